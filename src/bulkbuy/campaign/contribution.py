"""Contributions — commands and handler.

Each handler is one load-mutate-save inside a unit of work. The save is
version-checked, so a handler that read the campaign before a concurrent
pledge landed fails with ExpectedVersionError and nothing is written. Retrying
with a fresh read is the ledger's job (see bulkbuy.ledger).
"""

from protean import handle
from protean.fields import Float, Identifier, String
from protean.utils.globals import current_domain

from bulkbuy.campaign.campaign import BulkCampaign
from bulkbuy.domain import bulkbuy


@bulkbuy.command(part_of="BulkCampaign")
class ContributeToCampaign:
    """Pledge a quantity toward an open campaign."""

    campaign_id = Identifier(required=True)
    vendor_id = Identifier(required=True)
    quantity = Float(required=True)
    vendor_name = String(max_length=100)
    shop_name = String(max_length=150)


@bulkbuy.command(part_of="BulkCampaign")
class CancelContribution:
    """Withdraw all of a vendor's pledges from an open campaign."""

    campaign_id = Identifier(required=True)
    vendor_id = Identifier(required=True)


@bulkbuy.command_handler(part_of=BulkCampaign)
class ContributionHandler:
    @handle(ContributeToCampaign)
    def contribute(self, command):
        repo = current_domain.repository_for(BulkCampaign)
        campaign = repo.get(command.campaign_id)

        contribution = campaign.contribute(
            vendor_id=command.vendor_id,
            quantity=command.quantity,
            vendor_name=command.vendor_name,
            shop_name=command.shop_name,
        )
        repo.add(campaign)
        return str(contribution.id)

    @handle(CancelContribution)
    def cancel_contribution(self, command):
        repo = current_domain.repository_for(BulkCampaign)
        campaign = repo.get(command.campaign_id)

        removed_qty = campaign.cancel_contribution(vendor_id=command.vendor_id)
        repo.add(campaign)
        return removed_qty
