"""
test_proposal_assembler.py — Unit tests for proposal creation and the
schedule date helpers it relies on.

Tests cover:
  - grouping events by location → date with catalog defaults applied
  - explicit event fields overriding defaults
  - required fields, malformed emails and unknown service types
  - date normalisation, display and ordering
"""

import pytest

from app.services.errors import InvalidAdjustment, UnknownServiceType, ValidationError
from app.services.proposal_assembler import assemble_proposal, build_slot
from app.services.schedule_dates import format_date, normalize_date, sort_event_dates


class TestAssembleProposal:

    def test_grouping_and_defaults(self, sample_proposal):
        assert sample_proposal.locations == ["HQ", "Annex"]
        hq_day = sample_proposal.services["HQ"]["2025-03-03"]
        assert [s.service_type for s in hq_day.services] == ["massage", "headshot"]
        assert sample_proposal.office_locations == {"HQ": "1 Main St"}
        assert sample_proposal.status == "draft"
        assert sample_proposal.proposal_type == "event"

    def test_summary_computed(self, sample_proposal):
        """1080 (massage) + 3000 (headshot) + 2h × 1 × 135 = 270 (nails) = 4350."""
        assert sample_proposal.summary.subtotal_before_gratuity == pytest.approx(4350.0)
        assert sample_proposal.summary.total_appointments == 24 + 25 + 4

    def test_customization_defaults(self, sample_proposal):
        assert sample_proposal.customization["include_summary"] is True
        assert sample_proposal.customization["include_calculator"] is False

    def test_mindfulness_program_type(self):
        proposal = assemble_proposal({
            "client_name": "Calm Co",
            "events": [{"service_type": "mindfulness", "mindfulness_type": "drop-in"}],
        })
        slot = proposal.services["Main Office"]["TBD"].services[0]
        assert proposal.proposal_type == "mindfulness-program"
        assert slot.fixed_price == pytest.approx(1250.0)
        assert slot.total_appointments == "unlimited"

    def test_gratuity_and_discount(self, creation_payload):
        creation_payload.update(gratuity_type="percentage", gratuity_value=20, discount_percent=10)
        proposal = assemble_proposal(creation_payload)
        assert proposal.summary.gratuity_amount == pytest.approx(870.0)
        assert proposal.summary.discount_amount == pytest.approx(435.0)

    def test_email_normalised(self, creation_payload):
        creation_payload["client_email"] = "Events@Acme.com"
        assert assemble_proposal(creation_payload).client_email == "Events@acme.com"

    def test_missing_client_name(self, creation_payload):
        creation_payload["client_name"] = "  "
        with pytest.raises(ValidationError):
            assemble_proposal(creation_payload)

    def test_no_events(self):
        with pytest.raises(ValidationError):
            assemble_proposal({"client_name": "Acme", "events": []})

    def test_malformed_email(self, creation_payload):
        creation_payload["client_email"] = "acme.com"
        with pytest.raises(ValidationError):
            assemble_proposal(creation_payload)

    def test_unknown_service_reports_event_index(self, creation_payload):
        creation_payload["events"].append({"service_type": "yoga"})
        with pytest.raises(UnknownServiceType) as exc_info:
            assemble_proposal(creation_payload)
        assert "index 3" in exc_info.value.message

    def test_discount_out_of_range(self, creation_payload):
        creation_payload["discount_percent"] = 120
        with pytest.raises(InvalidAdjustment):
            assemble_proposal(creation_payload)


class TestBuildSlot:

    def test_explicit_fields_override_defaults(self):
        slot = build_slot({"service_type": "massage", "num_pros": 4, "hourly_rate": 150})
        assert slot.num_pros == 4
        assert slot.hourly_rate == 150
        assert slot.app_time == 20

    def test_headshot_tier_overlay(self):
        slot = build_slot({"service_type": "headshot", "headshot_tier": "executive"})
        assert slot.pro_hourly == 600.0
        assert slot.retouching_cost == 60.0

    def test_location_name_alias(self):
        assert build_slot({"service_type": "hair", "location_name": "Loft"}).location == "Loft"


class TestScheduleDates:

    @pytest.mark.parametrize("raw,expected", [
        ("2025-03-03", "2025-03-03"),
        ("03/03/2025", "2025-03-03"),
        ("March 3, 2025", "2025-03-03"),
        ("2025-03-03T10:00:00Z", "2025-03-03"),
        (None, "TBD"),
        ("", "TBD"),
        ("someday", "TBD"),
    ])
    def test_normalize(self, raw, expected):
        assert normalize_date(raw) == expected

    def test_format(self):
        assert format_date("2025-03-03") == "March 3, 2025"
        assert format_date("TBD") == "TBD"

    def test_sort_puts_tbd_last(self):
        assert sort_event_dates(["TBD", "2025-05-01", "2025-01-10", "2025-05-01"]) == [
            "2025-01-10", "2025-05-01", "TBD",
        ]
