"""Campaign board — one row per campaign for the bulk buy listing page."""

from protean.core.projector import on
from protean.exceptions import ObjectNotFoundError
from protean.fields import DateTime, Float, Identifier, Integer, String
from protean.utils.globals import current_domain

from bulkbuy.campaign.campaign import BulkCampaign
from bulkbuy.campaign.events import (
    CampaignFailed,
    CampaignFulfilled,
    CampaignLaunched,
    ContributionRecorded,
    ContributionWithdrawn,
)
from bulkbuy.domain import bulkbuy


def _load_row(campaign_id):
    """Board row for the campaign, or None when it was never projected."""
    try:
        return current_domain.repository_for(CampaignBoard).get(campaign_id)
    except ObjectNotFoundError:
        return None


def _progress(current_qty, target_qty):
    if not target_qty:
        return 0.0
    return round(min(100.0, current_qty / target_qty * 100), 2)


@bulkbuy.projection
class CampaignBoard:
    campaign_id = Identifier(identifier=True, required=True)
    item_name = String(required=True)
    unit = String(required=True)
    cluster_location = String(required=True)
    target_qty = Float(required=True)
    current_qty = Float(default=0.0)
    progress_percent = Float(default=0.0)
    contributor_count = Integer(default=0)
    individual_price = Float()
    bulk_price = Float()
    savings_per_unit = Float()
    deadline = DateTime(required=True)
    status = String(required=True)
    launched_at = DateTime()
    fulfilled_at = DateTime()
    failed_at = DateTime()
    updated_at = DateTime()


@bulkbuy.projector(projector_for=CampaignBoard, aggregates=[BulkCampaign])
class CampaignBoardProjector:
    @on(CampaignLaunched)
    def on_campaign_launched(self, event):
        current_domain.repository_for(CampaignBoard).add(
            CampaignBoard(
                campaign_id=event.campaign_id,
                item_name=event.item_name,
                unit=event.unit,
                cluster_location=event.cluster_location,
                target_qty=event.target_qty,
                current_qty=0.0,
                progress_percent=0.0,
                contributor_count=0,
                individual_price=event.individual_price,
                bulk_price=event.bulk_price,
                savings_per_unit=event.individual_price - event.bulk_price,
                deadline=event.deadline,
                status="Open",
                launched_at=event.launched_at,
                updated_at=event.launched_at,
            )
        )

    @on(ContributionRecorded)
    def on_contribution_recorded(self, event):
        row = _load_row(event.campaign_id)
        if row is None:
            return
        row.current_qty = event.new_qty
        row.progress_percent = _progress(event.new_qty, row.target_qty)
        row.contributor_count = event.contributor_count
        row.updated_at = event.contributed_at
        current_domain.repository_for(CampaignBoard).add(row)

    @on(ContributionWithdrawn)
    def on_contribution_withdrawn(self, event):
        row = _load_row(event.campaign_id)
        if row is None:
            return
        row.current_qty = event.new_qty
        row.progress_percent = _progress(event.new_qty, row.target_qty)
        row.contributor_count = event.contributor_count
        row.updated_at = event.withdrawn_at
        current_domain.repository_for(CampaignBoard).add(row)

    @on(CampaignFulfilled)
    def on_campaign_fulfilled(self, event):
        row = _load_row(event.campaign_id)
        if row is None:
            return
        row.status = "Fulfilled"
        row.current_qty = event.final_qty
        row.progress_percent = 100.0
        row.fulfilled_at = event.fulfilled_at
        row.updated_at = event.fulfilled_at
        current_domain.repository_for(CampaignBoard).add(row)

    @on(CampaignFailed)
    def on_campaign_failed(self, event):
        row = _load_row(event.campaign_id)
        if row is None:
            return
        row.status = "Failed"
        row.failed_at = event.failed_at
        row.updated_at = event.failed_at
        current_domain.repository_for(CampaignBoard).add(row)
