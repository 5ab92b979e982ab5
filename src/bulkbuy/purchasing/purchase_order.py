"""PurchaseOrder aggregate (CQRS) — a contributor's order at the locked bulk price.

Placed automatically for every vendor once a campaign is fulfilled. The
quantity is the vendor's total pledge across all of their contributions.
"""

from datetime import UTC, datetime
from enum import Enum

from protean.fields import DateTime, Float, Identifier, String

from bulkbuy.domain import bulkbuy


class PurchaseOrderStatus(Enum):
    PLACED = "Placed"


@bulkbuy.event(part_of="PurchaseOrder")
class PurchaseOrderPlaced:
    """An order was placed for a contributor of a fulfilled campaign."""

    __version__ = "v1"

    purchase_order_id = Identifier(required=True)
    campaign_id = Identifier(required=True)
    vendor_id = Identifier(required=True)
    item_name = String(required=True)
    unit = String(required=True)
    quantity = Float(required=True)
    unit_price = Float(required=True)
    total_amount = Float(required=True)
    placed_at = DateTime(required=True)


@bulkbuy.aggregate
class PurchaseOrder:
    campaign_id = Identifier(required=True)
    vendor_id = Identifier(required=True)
    vendor_name = String(max_length=100)  # Copied for display
    shop_name = String(max_length=150)  # Copied for display
    item_name = String(required=True, max_length=100)
    unit = String(required=True, max_length=20)
    quantity = Float(required=True)
    unit_price = Float(required=True, min_value=0.0)
    total_amount = Float(required=True, min_value=0.0)
    status = String(choices=PurchaseOrderStatus, default=PurchaseOrderStatus.PLACED.value)
    placed_at = DateTime()

    @classmethod
    def place_for_campaign(
        cls,
        campaign_id,
        vendor_id,
        item_name,
        unit,
        quantity,
        unit_price,
        vendor_name=None,
        shop_name=None,
    ):
        now = datetime.now(UTC)
        total_amount = round(quantity * unit_price, 2)

        order = cls(
            campaign_id=campaign_id,
            vendor_id=vendor_id,
            vendor_name=vendor_name,
            shop_name=shop_name,
            item_name=item_name,
            unit=unit,
            quantity=quantity,
            unit_price=unit_price,
            total_amount=total_amount,
            status=PurchaseOrderStatus.PLACED.value,
            placed_at=now,
        )
        order.raise_(
            PurchaseOrderPlaced(
                purchase_order_id=str(order.id),
                campaign_id=str(campaign_id),
                vendor_id=str(vendor_id),
                item_name=item_name,
                unit=unit,
                quantity=quantity,
                unit_price=unit_price,
                total_amount=total_amount,
                placed_at=now,
            )
        )
        return order
