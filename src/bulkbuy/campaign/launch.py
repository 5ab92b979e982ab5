"""Campaign launch — command and handler.

Campaigns are opened by an operator or by the seeding script; vendors never
create them.
"""

from protean import handle
from protean.fields import DateTime, Float, String
from protean.utils.globals import current_domain

from bulkbuy.campaign.campaign import BulkCampaign
from bulkbuy.domain import bulkbuy


@bulkbuy.command(part_of="BulkCampaign")
class LaunchCampaign:
    """Open a pooled purchase campaign for one item in a cluster."""

    item_name = String(required=True, max_length=100)
    unit = String(required=True, max_length=20)
    cluster_location = String(required=True, max_length=100)
    target_qty = Float(required=True)
    individual_price = Float(required=True)
    bulk_price = Float(required=True)
    deadline = DateTime(required=True)


@bulkbuy.command_handler(part_of=BulkCampaign)
class LaunchCampaignHandler:
    @handle(LaunchCampaign)
    def launch_campaign(self, command):
        campaign = BulkCampaign.launch(
            item_name=command.item_name,
            unit=command.unit,
            cluster_location=command.cluster_location,
            target_qty=command.target_qty,
            individual_price=command.individual_price,
            bulk_price=command.bulk_price,
            deadline=command.deadline,
        )
        current_domain.repository_for(BulkCampaign).add(campaign)
        return str(campaign.id)
