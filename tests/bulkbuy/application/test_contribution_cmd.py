"""Application tests for ContributeToCampaign and CancelContribution command handlers."""

from datetime import UTC, datetime, timedelta

import pytest
from bulkbuy.campaign.campaign import BulkCampaign, CampaignStatus
from bulkbuy.campaign.contribution import CancelContribution, ContributeToCampaign
from bulkbuy.campaign.exceptions import CampaignClosedError
from bulkbuy.campaign.launch import LaunchCampaign
from protean import current_domain
from protean.exceptions import ObjectNotFoundError, ValidationError


def _launch(**overrides):
    defaults = {
        "item_name": "Tomato",
        "unit": "kg",
        "cluster_location": "Sealdah_North",
        "target_qty": 50,
        "individual_price": 45,
        "bulk_price": 30,
        "deadline": datetime.now(UTC) + timedelta(days=2),
    }
    defaults.update(overrides)
    return current_domain.process(LaunchCampaign(**defaults), asynchronous=False)


def _contribute(campaign_id, vendor_id="vendor-001", quantity=10, **kwargs):
    return current_domain.process(
        ContributeToCampaign(campaign_id=campaign_id, vendor_id=vendor_id, quantity=quantity, **kwargs),
        asynchronous=False,
    )


def _get(campaign_id):
    return current_domain.repository_for(BulkCampaign).get(campaign_id)


class TestContributeCommand:
    def test_contribution_persisted(self):
        campaign_id = _launch()
        contribution_id = _contribute(campaign_id, quantity=12, vendor_name="Ramesh", shop_name="Ramesh Chaat Corner")

        campaign = _get(campaign_id)
        assert campaign.current_qty == 12
        assert len(campaign.contributions) == 1
        assert str(campaign.contributions[0].id) == contribution_id
        assert campaign.contributions[0].shop_name == "Ramesh Chaat Corner"

    def test_pledges_accumulate(self):
        campaign_id = _launch()
        _contribute(campaign_id, vendor_id="vendor-001", quantity=10)
        _contribute(campaign_id, vendor_id="vendor-002", quantity=15)
        _contribute(campaign_id, vendor_id="vendor-001", quantity=5)

        campaign = _get(campaign_id)
        assert campaign.current_qty == 30
        assert len(campaign.contributions) == 3

    def test_reaching_target_fulfills_persisted_campaign(self):
        campaign_id = _launch()
        _contribute(campaign_id, vendor_id="vendor-001", quantity=25)
        _contribute(campaign_id, vendor_id="vendor-002", quantity=25)

        campaign = _get(campaign_id)
        assert campaign.status == CampaignStatus.FULFILLED.value
        assert campaign.current_qty == 50
        assert campaign.fulfilled_at is not None

    def test_invalid_quantity_changes_nothing(self):
        campaign_id = _launch()
        _contribute(campaign_id, quantity=25)

        with pytest.raises(ValidationError):
            _contribute(campaign_id, vendor_id="vendor-002", quantity=-5)

        campaign = _get(campaign_id)
        assert campaign.current_qty == 25
        assert len(campaign.contributions) == 1

    def test_contribute_to_fulfilled_rejected(self):
        campaign_id = _launch(target_qty=10)
        _contribute(campaign_id, quantity=10)

        with pytest.raises(CampaignClosedError):
            _contribute(campaign_id, vendor_id="vendor-002", quantity=3)

        campaign = _get(campaign_id)
        assert campaign.current_qty == 10
        assert len(campaign.contributions) == 1

    def test_unknown_campaign(self):
        with pytest.raises(ObjectNotFoundError):
            _contribute("no-such-campaign")


class TestCancelContributionCommand:
    def test_cancel_persists_removal(self):
        campaign_id = _launch()
        _contribute(campaign_id, vendor_id="vendor-001", quantity=10)
        _contribute(campaign_id, vendor_id="vendor-002", quantity=8)

        removed = current_domain.process(
            CancelContribution(campaign_id=campaign_id, vendor_id="vendor-001"),
            asynchronous=False,
        )

        assert removed == 10
        campaign = _get(campaign_id)
        assert campaign.current_qty == 8
        assert campaign.contributor_ids() == ["vendor-002"]

    def test_cancel_without_pledge_rejected(self):
        campaign_id = _launch()
        with pytest.raises(ValidationError):
            current_domain.process(
                CancelContribution(campaign_id=campaign_id, vendor_id="vendor-001"),
                asynchronous=False,
            )
