"""Campaign expiry — commands and handlers for failing overdue campaigns.

Expiry is evaluated lazily: the ledger fails a campaign when a write finds it
past its deadline. ExpireOverdueCampaigns is the proactive counterpart,
designed to be triggered periodically by an external scheduler (cron, K8s
CronJob) via ``python src/manage.py expire-overdue``.
"""

from datetime import UTC, datetime

import structlog
from protean import handle
from protean.exceptions import ExpectedVersionError, InvalidOperationError, ValidationError
from protean.fields import DateTime, Identifier
from protean.utils.globals import current_domain

from bulkbuy.campaign.campaign import BulkCampaign, CampaignStatus, as_utc
from bulkbuy.domain import bulkbuy

logger = structlog.get_logger(__name__)


@bulkbuy.command(part_of="BulkCampaign")
class ExpireCampaign:
    """Fail one campaign whose deadline has passed."""

    campaign_id = Identifier(required=True)
    as_of = DateTime()  # Optional: defaults to now


@bulkbuy.command(part_of="BulkCampaign")
class ExpireOverdueCampaigns:
    """Fail every open campaign whose deadline has passed."""

    as_of = DateTime()  # Optional: defaults to now


@bulkbuy.command_handler(part_of=BulkCampaign)
class ExpireCampaignHandler:
    @handle(ExpireCampaign)
    def expire_campaign(self, command):
        repo = current_domain.repository_for(BulkCampaign)
        campaign = repo.get(command.campaign_id)

        # Another writer already failed it
        if CampaignStatus(campaign.status) == CampaignStatus.FAILED:
            return campaign.status

        campaign.mark_failed(as_of=command.as_of)
        repo.add(campaign)

        logger.info(
            "Campaign failed at deadline",
            campaign_id=str(campaign.id),
            current_qty=campaign.current_qty,
            target_qty=campaign.target_qty,
        )
        return campaign.status


@bulkbuy.command_handler(part_of=BulkCampaign)
class ExpireOverdueCampaignsHandler:
    @handle(ExpireOverdueCampaigns)
    def expire_overdue_campaigns(self, command):
        as_of = as_utc(command.as_of) or datetime.now(UTC)

        logger.info("Checking for overdue campaigns", as_of=as_of.isoformat())

        open_campaigns = (
            current_domain.repository_for(BulkCampaign)
            ._dao.query.filter(status=CampaignStatus.OPEN.value)
            .all()
            .items
        )
        overdue = [c for c in open_campaigns if c.is_past_deadline(as_of)]

        if not overdue:
            logger.info("No overdue campaigns found")
            return 0

        expired_count = 0
        for campaign in overdue:
            try:
                current_domain.process(
                    ExpireCampaign(campaign_id=str(campaign.id), as_of=as_of),
                    asynchronous=False,
                )
                expired_count += 1
            except (ValidationError, InvalidOperationError, ExpectedVersionError) as exc:
                logger.warning(
                    "Failed to expire overdue campaign",
                    campaign_id=str(campaign.id),
                    error=str(exc),
                )

        logger.info("Overdue campaign sweep complete", expired_count=expired_count)
        return expired_count
