"""BulkCampaign aggregate (CQRS) — the core of the bulk buy domain.

A campaign pools pledges from many vendors toward one target quantity of a
single item in a cluster. Reaching the target locks the discounted bulk price
for every contributor.

CQRS (not event sourced) — every write goes through the repository with the
aggregate's version counter, so a save based on a stale read is rejected with
ExpectedVersionError instead of silently overwriting a concurrent pledge.

State Machine (3 states):
    OPEN → FULFILLED   (current_qty reaches target_qty)
    OPEN → FAILED      (deadline passes short of the target)
    FULFILLED, FAILED → (terminal)
"""

import json
import math
from datetime import UTC, datetime
from enum import Enum

from protean import atomic_change, invariant
from protean.exceptions import ValidationError
from protean.fields import DateTime, Float, HasMany, Identifier, String

from bulkbuy.campaign.events import (
    CampaignFailed,
    CampaignFulfilled,
    CampaignLaunched,
    ContributionRecorded,
    ContributionWithdrawn,
)
from bulkbuy.campaign.exceptions import CampaignClosedError, CampaignExpiredError
from bulkbuy.domain import bulkbuy


# ---------------------------------------------------------------------------
# Enums
# ---------------------------------------------------------------------------
class CampaignStatus(Enum):
    OPEN = "Open"
    FULFILLED = "Fulfilled"
    FAILED = "Failed"


# ---------------------------------------------------------------------------
# State Machine
# ---------------------------------------------------------------------------
_VALID_TRANSITIONS = {
    CampaignStatus.OPEN: {CampaignStatus.FULFILLED, CampaignStatus.FAILED},
    CampaignStatus.FULFILLED: set(),  # Terminal
    CampaignStatus.FAILED: set(),  # Terminal
}

# Float quantities (kg, litres) are summed incrementally
_QTY_TOLERANCE = 1e-6


def as_utc(value):
    """Normalize a timestamp to an aware UTC datetime.

    SQL providers hand back naive datetimes; everything written by this domain
    is UTC.
    """
    if value is None:
        return None
    if value.tzinfo is None:
        return value.replace(tzinfo=UTC)
    return value


# ---------------------------------------------------------------------------
# Entities
# ---------------------------------------------------------------------------
@bulkbuy.entity(part_of="BulkCampaign")
class Contribution:
    """One vendor's pledge toward a campaign.

    vendor_name and shop_name are copied from the vendor profile at write time
    for display. They are advisory and can drift from the vendor record.
    """

    vendor_id = Identifier(required=True)
    quantity = Float(required=True)
    vendor_name = String(max_length=100)
    shop_name = String(max_length=150)
    contributed_at = DateTime(required=True)

    @invariant.post
    def quantity_must_be_positive(self):
        if self.quantity is not None and (not math.isfinite(self.quantity) or self.quantity <= 0):
            raise ValidationError({"quantity": ["Contribution quantity must be a positive number"]})


# ---------------------------------------------------------------------------
# Aggregate Root
# ---------------------------------------------------------------------------
@bulkbuy.aggregate
class BulkCampaign:
    """A pooled purchase opportunity for one item in one cluster."""

    item_name = String(required=True, max_length=100)
    unit = String(required=True, max_length=20)
    cluster_location = String(required=True, max_length=100)

    target_qty = Float(required=True)
    current_qty = Float(default=0.0)

    individual_price = Float(required=True, min_value=0.0)
    bulk_price = Float(required=True, min_value=0.0)

    deadline = DateTime(required=True)
    status = String(choices=CampaignStatus, default=CampaignStatus.OPEN.value)
    contributions = HasMany(Contribution)

    launched_at = DateTime()
    fulfilled_at = DateTime()
    failed_at = DateTime()
    updated_at = DateTime()

    # -------------------------------------------------------------------
    # Invariants
    # -------------------------------------------------------------------
    @invariant.post
    def target_must_be_positive(self):
        if self.target_qty is not None and self.target_qty <= 0:
            raise ValidationError({"target_qty": ["Target quantity must be positive"]})

    @invariant.post
    def current_qty_cannot_be_negative(self):
        if self.current_qty is not None and self.current_qty < 0:
            raise ValidationError({"current_qty": ["Current quantity cannot be negative"]})

    @invariant.post
    def current_qty_matches_contributions(self):
        recorded = sum(c.quantity for c in self.contributions)
        if not math.isclose(self.current_qty or 0.0, recorded, abs_tol=_QTY_TOLERANCE):
            raise ValidationError(
                {"current_qty": [f"Current quantity {self.current_qty} does not match contributions total {recorded}"]}
            )

    @invariant.post
    def bulk_price_must_undercut_individual_price(self):
        if self.bulk_price is None or self.individual_price is None:
            return
        if self.bulk_price >= self.individual_price:
            raise ValidationError({"bulk_price": ["Bulk price must be lower than the individual price"]})

    @invariant.post
    def fulfilled_at_only_when_fulfilled(self):
        is_fulfilled = self.status == CampaignStatus.FULFILLED.value
        if is_fulfilled != (self.fulfilled_at is not None):
            raise ValidationError({"fulfilled_at": ["Fulfillment time is recorded only for fulfilled campaigns"]})

    @invariant.post
    def failed_at_only_when_failed(self):
        is_failed = self.status == CampaignStatus.FAILED.value
        if is_failed != (self.failed_at is not None):
            raise ValidationError({"failed_at": ["Failure time is recorded only for failed campaigns"]})

    # -------------------------------------------------------------------
    # Factory
    # -------------------------------------------------------------------
    @classmethod
    def launch(
        cls,
        item_name,
        unit,
        cluster_location,
        target_qty,
        individual_price,
        bulk_price,
        deadline,
    ):
        """Open a new campaign with nothing pledged yet."""
        now = datetime.now(UTC)
        if deadline is None or as_utc(deadline) <= now:
            raise ValidationError({"deadline": ["Deadline must be in the future"]})

        campaign = cls(
            item_name=item_name,
            unit=unit,
            cluster_location=cluster_location,
            target_qty=target_qty,
            current_qty=0.0,
            individual_price=individual_price,
            bulk_price=bulk_price,
            deadline=deadline,
            status=CampaignStatus.OPEN.value,
            launched_at=now,
            updated_at=now,
        )

        campaign.raise_(
            CampaignLaunched(
                campaign_id=str(campaign.id),
                item_name=item_name,
                unit=unit,
                cluster_location=cluster_location,
                target_qty=target_qty,
                individual_price=individual_price,
                bulk_price=bulk_price,
                deadline=deadline,
                launched_at=now,
            )
        )
        return campaign

    # -------------------------------------------------------------------
    # Derived values
    # -------------------------------------------------------------------
    @property
    def progress_percent(self):
        if not self.target_qty:
            return 0.0
        if self.has_reached_target():
            return 100.0
        return (self.current_qty or 0.0) / self.target_qty * 100

    @property
    def outstanding_qty(self):
        if self.has_reached_target():
            return 0.0
        return self.target_qty - (self.current_qty or 0.0)

    @property
    def savings_per_unit(self):
        return self.individual_price - self.bulk_price

    def has_reached_target(self):
        """True once the pledged total meets the target, allowing for float drift."""
        return (self.current_qty or 0.0) >= self.target_qty - _QTY_TOLERANCE

    def contributor_ids(self):
        """Distinct vendor ids, in order of their first pledge."""
        return list(dict.fromkeys(str(c.vendor_id) for c in self.contributions))

    def vendor_totals(self):
        """Total pledged quantity per vendor, in order of their first pledge."""
        totals = {}
        for contribution in self.contributions:
            vendor_id = str(contribution.vendor_id)
            entry = totals.setdefault(
                vendor_id,
                {
                    "vendor_id": vendor_id,
                    "vendor_name": contribution.vendor_name,
                    "shop_name": contribution.shop_name,
                    "quantity": 0.0,
                },
            )
            entry["quantity"] += contribution.quantity
        return list(totals.values())

    def is_past_deadline(self, as_of=None):
        as_of = as_utc(as_of) or datetime.now(UTC)
        return as_of >= as_utc(self.deadline)

    # -------------------------------------------------------------------
    # State transitions
    # -------------------------------------------------------------------
    def _assert_can_transition(self, target_status):
        current = CampaignStatus(self.status)
        if target_status not in _VALID_TRANSITIONS.get(current, set()):
            raise CampaignClosedError(
                {"status": [f"Cannot transition from {current.value} to {target_status.value}"]}
            )

    def _assert_accepting_changes(self, as_of):
        if CampaignStatus(self.status) != CampaignStatus.OPEN:
            raise CampaignClosedError({"status": [f"Campaign is {self.status} and no longer accepts changes"]})
        if self.is_past_deadline(as_of):
            raise CampaignExpiredError(
                {"deadline": [f"Campaign deadline {as_utc(self.deadline).isoformat()} has passed"]}
            )

    # -------------------------------------------------------------------
    # Contributions
    # -------------------------------------------------------------------
    def contribute(self, vendor_id, quantity, vendor_name=None, shop_name=None, as_of=None):
        """Record a vendor's pledge and fulfil the campaign if the target is met.

        The increment and the threshold check happen on the same in-memory
        state that is saved, so the check can never run against a stale total.
        """
        if quantity is None or not math.isfinite(quantity) or quantity <= 0:
            raise ValidationError({"quantity": ["Quantity must be a positive number"]})

        now = as_utc(as_of) or datetime.now(UTC)
        self._assert_accepting_changes(now)

        previous_qty = self.current_qty or 0.0
        contribution = Contribution(
            vendor_id=vendor_id,
            quantity=quantity,
            vendor_name=vendor_name,
            shop_name=shop_name,
            contributed_at=now,
        )

        with atomic_change(self):
            self.add_contributions(contribution)
            self.current_qty = previous_qty + quantity
            self.updated_at = now

        self.raise_(
            ContributionRecorded(
                campaign_id=str(self.id),
                contribution_id=str(contribution.id),
                vendor_id=str(vendor_id),
                vendor_name=vendor_name,
                shop_name=shop_name,
                quantity=quantity,
                previous_qty=previous_qty,
                new_qty=self.current_qty,
                target_qty=self.target_qty,
                contributor_count=len(self.contributor_ids()),
                contributed_at=now,
            )
        )

        if self.has_reached_target():
            self._fulfill(now)

        return contribution

    def cancel_contribution(self, vendor_id, as_of=None):
        """Withdraw every pledge the vendor made to this campaign.

        Returns the total quantity removed.
        """
        now = as_utc(as_of) or datetime.now(UTC)
        self._assert_accepting_changes(now)

        entries = [c for c in self.contributions if str(c.vendor_id) == str(vendor_id)]
        if not entries:
            raise ValidationError({"vendor_id": ["Vendor has no contribution to this campaign"]})

        removed_qty = sum(c.quantity for c in entries)
        previous_qty = self.current_qty or 0.0

        with atomic_change(self):
            for entry in entries:
                self.remove_contributions(entry)
            self.current_qty = max(0.0, previous_qty - removed_qty)
            self.updated_at = now

        self.raise_(
            ContributionWithdrawn(
                campaign_id=str(self.id),
                vendor_id=str(vendor_id),
                quantity=removed_qty,
                entries_removed=len(entries),
                previous_qty=previous_qty,
                new_qty=self.current_qty,
                contributor_count=len(self.contributor_ids()),
                withdrawn_at=now,
            )
        )
        return removed_qty

    def _fulfill(self, now):
        self._assert_can_transition(CampaignStatus.FULFILLED)

        with atomic_change(self):
            self.status = CampaignStatus.FULFILLED.value
            self.fulfilled_at = now
            self.updated_at = now

        self.raise_(
            CampaignFulfilled(
                campaign_id=str(self.id),
                item_name=self.item_name,
                unit=self.unit,
                cluster_location=self.cluster_location,
                final_qty=self.current_qty,
                target_qty=self.target_qty,
                bulk_price=self.bulk_price,
                vendor_totals=json.dumps(self.vendor_totals()),
                fulfilled_at=now,
            )
        )

    # -------------------------------------------------------------------
    # Expiry
    # -------------------------------------------------------------------
    def mark_failed(self, as_of=None):
        """Close an open campaign whose deadline passed short of the target."""
        self._assert_can_transition(CampaignStatus.FAILED)

        now = as_utc(as_of) or datetime.now(UTC)
        if not self.is_past_deadline(now):
            raise ValidationError({"deadline": ["Campaign deadline has not passed yet"]})

        with atomic_change(self):
            self.status = CampaignStatus.FAILED.value
            self.failed_at = now
            self.updated_at = now

        self.raise_(
            CampaignFailed(
                campaign_id=str(self.id),
                final_qty=self.current_qty or 0.0,
                target_qty=self.target_qty,
                deadline=self.deadline,
                failed_at=now,
            )
        )
