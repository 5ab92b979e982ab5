"""Domain events for the BulkCampaign aggregate.

All events are versioned, immutable facts representing state changes.
Events are used for:
- Updating the CampaignBoard projection via its projector
- Placing purchase orders once a campaign is fulfilled
"""

from protean.fields import DateTime, Float, Identifier, Integer, String, Text

from bulkbuy.domain import bulkbuy


@bulkbuy.event(part_of="BulkCampaign")
class CampaignLaunched:
    """An operator opened a new pooled purchase campaign."""

    __version__ = "v1"

    campaign_id = Identifier(required=True)
    item_name = String(required=True)
    unit = String(required=True)
    cluster_location = String(required=True)
    target_qty = Float(required=True)
    individual_price = Float(required=True)
    bulk_price = Float(required=True)
    deadline = DateTime(required=True)
    launched_at = DateTime(required=True)


@bulkbuy.event(part_of="BulkCampaign")
class ContributionRecorded:
    """A vendor pledged a quantity toward the campaign target."""

    __version__ = "v1"

    campaign_id = Identifier(required=True)
    contribution_id = Identifier(required=True)
    vendor_id = Identifier(required=True)
    vendor_name = String()
    shop_name = String()
    quantity = Float(required=True)
    previous_qty = Float(required=True)
    new_qty = Float(required=True)
    target_qty = Float(required=True)
    contributor_count = Integer(required=True)
    contributed_at = DateTime(required=True)


@bulkbuy.event(part_of="BulkCampaign")
class ContributionWithdrawn:
    """A vendor withdrew all of their pledges while the campaign was open."""

    __version__ = "v1"

    campaign_id = Identifier(required=True)
    vendor_id = Identifier(required=True)
    quantity = Float(required=True)
    entries_removed = Integer(required=True)
    previous_qty = Float(required=True)
    new_qty = Float(required=True)
    contributor_count = Integer(required=True)
    withdrawn_at = DateTime(required=True)


@bulkbuy.event(part_of="BulkCampaign")
class CampaignFulfilled:
    """The target was reached and the bulk price is locked in for every contributor."""

    __version__ = "v1"

    campaign_id = Identifier(required=True)
    item_name = String(required=True)
    unit = String(required=True)
    cluster_location = String(required=True)
    final_qty = Float(required=True)
    target_qty = Float(required=True)
    bulk_price = Float(required=True)
    vendor_totals = Text(required=True)  # JSON: [{vendor_id, vendor_name, shop_name, quantity}]
    fulfilled_at = DateTime(required=True)


@bulkbuy.event(part_of="BulkCampaign")
class CampaignFailed:
    """The deadline passed before the target was reached."""

    __version__ = "v1"

    campaign_id = Identifier(required=True)
    final_qty = Float(required=True)
    target_qty = Float(required=True)
    deadline = DateTime(required=True)
    failed_at = DateTime(required=True)
