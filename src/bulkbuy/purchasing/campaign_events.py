"""Purchasing reacts to BulkCampaign events.

Listens for CampaignFulfilled and places one PurchaseOrder per contributing
vendor at the campaign's bulk price. The ledger only announces fulfillment;
order creation and contributor notification live here.
"""

import json

import structlog
from protean.utils.globals import current_domain
from protean.utils.mixins import handle

from bulkbuy.campaign.events import CampaignFulfilled
from bulkbuy.domain import bulkbuy
from bulkbuy.purchasing.purchase_order import PurchaseOrder

logger = structlog.get_logger(__name__)


@bulkbuy.event_handler(part_of=PurchaseOrder, stream_category="bulkbuy::bulk_campaign")
class CampaignPurchasingEventHandler:
    """Turns a fulfilled campaign into purchase orders for its contributors."""

    @handle(CampaignFulfilled)
    def on_campaign_fulfilled(self, event: CampaignFulfilled) -> None:
        """Place an order for each vendor that has none yet for this campaign.

        Redelivered events are harmless: vendors already holding an order for
        the campaign are skipped.
        """
        logger.info(
            "Placing purchase orders for fulfilled campaign",
            campaign_id=str(event.campaign_id),
            final_qty=event.final_qty,
            bulk_price=event.bulk_price,
        )
        repo = current_domain.repository_for(PurchaseOrder)
        already_placed = {
            str(order.vendor_id)
            for order in repo._dao.query.filter(campaign_id=str(event.campaign_id)).all().items
        }

        for total in json.loads(event.vendor_totals):
            if total["vendor_id"] in already_placed:
                continue

            order = PurchaseOrder.place_for_campaign(
                campaign_id=event.campaign_id,
                vendor_id=total["vendor_id"],
                vendor_name=total.get("vendor_name"),
                shop_name=total.get("shop_name"),
                item_name=event.item_name,
                unit=event.unit,
                quantity=total["quantity"],
                unit_price=event.bulk_price,
            )
            repo.add(order)

            logger.info(
                "Notifying contributor of locked bulk price",
                campaign_id=str(event.campaign_id),
                vendor_id=total["vendor_id"],
                purchase_order_id=str(order.id),
                quantity=total["quantity"],
                total_amount=order.total_amount,
            )
