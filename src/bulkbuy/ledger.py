"""BulkOrderLedger — the operations clients use against bulk campaigns.

Writes go through commands processed synchronously. Every campaign save is
checked against the version it was read at; when a concurrent pledge wins the
race the storage layer raises ExpectedVersionError, nothing is written, and the
command is re-issued against a fresh read. After ``BULKBUY_MAX_WRITE_ATTEMPTS``
losses in a row the caller gets ContributionConflictError.

Errors callers should expect:
    ObjectNotFoundError        unknown campaign id
    ValidationError            non-positive quantity, nothing to cancel, bad launch data
    CampaignClosedError        campaign already Fulfilled or Failed
    CampaignExpiredError       deadline passed (the campaign is marked Failed)
    ContributionConflictError  retries exhausted
"""

import os
from datetime import UTC, datetime

import structlog
from protean.exceptions import ExpectedVersionError
from protean.utils.globals import current_domain

from bulkbuy.campaign.campaign import BulkCampaign, CampaignStatus, as_utc
from bulkbuy.campaign.contribution import CancelContribution, ContributeToCampaign
from bulkbuy.campaign.exceptions import CampaignClosedError, CampaignExpiredError, ContributionConflictError
from bulkbuy.campaign.expiry import ExpireCampaign, ExpireOverdueCampaigns
from bulkbuy.campaign.launch import LaunchCampaign
from bulkbuy.projections.campaign_board import CampaignBoard

logger = structlog.get_logger(__name__)

DEFAULT_MAX_WRITE_ATTEMPTS = 5


def max_write_attempts() -> int:
    """Bound on optimistic retries for a single campaign write."""
    return int(os.getenv("BULKBUY_MAX_WRITE_ATTEMPTS", DEFAULT_MAX_WRITE_ATTEMPTS))


def _process_with_retry(build_command, campaign_id, max_attempts=None):
    """Process a freshly built command, re-reading the campaign on version conflicts."""
    attempts = max_attempts or max_write_attempts()

    for attempt in range(1, attempts + 1):
        try:
            return current_domain.process(build_command(), asynchronous=False)
        except ExpectedVersionError as exc:
            logger.warning(
                "Campaign changed concurrently, retrying",
                campaign_id=str(campaign_id),
                attempt=attempt,
                max_attempts=attempts,
                error=str(exc),
            )

    logger.error(
        "Giving up on campaign write after repeated conflicts",
        campaign_id=str(campaign_id),
        attempts=attempts,
    )
    raise ContributionConflictError(
        {"campaign_id": [f"Campaign {campaign_id} was modified concurrently {attempts} times; try again"]}
    )


def _expire(campaign_id, max_attempts=None):
    """Lazily fail a campaign found past its deadline by a read or write."""
    try:
        _process_with_retry(lambda: ExpireCampaign(campaign_id=str(campaign_id)), campaign_id, max_attempts)
    except CampaignClosedError:
        # A concurrent pledge fulfilled it first
        logger.info("Expired campaign already closed", campaign_id=str(campaign_id))
    except ContributionConflictError:
        # The overdue sweep will fail it on its next run
        logger.warning("Could not mark expired campaign as failed", campaign_id=str(campaign_id))


# ---------------------------------------------------------------------------
# Writes
# ---------------------------------------------------------------------------
def launch_campaign(
    item_name,
    unit,
    cluster_location,
    target_qty,
    individual_price,
    bulk_price,
    deadline,
):
    """Open a new campaign. Returns the campaign id."""
    campaign_id = current_domain.process(
        LaunchCampaign(
            item_name=item_name,
            unit=unit,
            cluster_location=cluster_location,
            target_qty=target_qty,
            individual_price=individual_price,
            bulk_price=bulk_price,
            deadline=deadline,
        ),
        asynchronous=False,
    )
    logger.info(
        "Campaign launched",
        campaign_id=campaign_id,
        item_name=item_name,
        cluster_location=cluster_location,
        target_qty=target_qty,
    )
    return campaign_id


def contribute(
    campaign_id,
    vendor_id,
    quantity,
    vendor_name=None,
    shop_name=None,
    max_attempts=None,
):
    """Pledge ``quantity`` toward a campaign on behalf of ``vendor_id``.

    Either the pledge is recorded and the total updated (fulfilling the
    campaign when the target is reached), or nothing changes and an error is
    raised. Returns the new contribution id.
    """
    try:
        contribution_id = _process_with_retry(
            lambda: ContributeToCampaign(
                campaign_id=str(campaign_id),
                vendor_id=str(vendor_id),
                quantity=quantity,
                vendor_name=vendor_name,
                shop_name=shop_name,
            ),
            campaign_id,
            max_attempts,
        )
    except CampaignExpiredError:
        _expire(campaign_id, max_attempts)
        raise

    logger.info(
        "Contribution recorded",
        campaign_id=str(campaign_id),
        vendor_id=str(vendor_id),
        quantity=quantity,
    )
    return contribution_id


def cancel_contribution(campaign_id, vendor_id, max_attempts=None):
    """Withdraw all of a vendor's pledges from an open campaign.

    Returns the quantity removed from the campaign total.
    """
    try:
        removed_qty = _process_with_retry(
            lambda: CancelContribution(campaign_id=str(campaign_id), vendor_id=str(vendor_id)),
            campaign_id,
            max_attempts,
        )
    except CampaignExpiredError:
        _expire(campaign_id, max_attempts)
        raise

    logger.info(
        "Contribution withdrawn",
        campaign_id=str(campaign_id),
        vendor_id=str(vendor_id),
        quantity=removed_qty,
    )
    return removed_qty


def expire_overdue_campaigns(as_of=None):
    """Fail every open campaign past its deadline. Returns how many were failed."""
    return current_domain.process(ExpireOverdueCampaigns(as_of=as_of), asynchronous=False)


# ---------------------------------------------------------------------------
# Reads
# ---------------------------------------------------------------------------
def get_campaign(campaign_id):
    """Load a campaign, failing it first if its deadline has passed."""
    repo = current_domain.repository_for(BulkCampaign)
    campaign = repo.get(str(campaign_id))

    if CampaignStatus(campaign.status) == CampaignStatus.OPEN and campaign.is_past_deadline():
        _expire(campaign_id)
        campaign = repo.get(str(campaign_id))

    return campaign


def list_open_campaigns(as_of=None):
    """Open campaigns still accepting pledges, soonest deadline first.

    Pure read: campaigns past their deadline are left out but not written to.
    """
    as_of = as_utc(as_of) or datetime.now(UTC)
    rows = (
        current_domain.repository_for(CampaignBoard)
        ._dao.query.filter(status=CampaignStatus.OPEN.value)
        .all()
        .items
    )
    live = [row for row in rows if as_utc(row.deadline) > as_of]
    return sorted(live, key=lambda row: (as_utc(row.deadline), str(row.campaign_id)))
