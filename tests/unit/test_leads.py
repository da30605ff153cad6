"""Unit tests for lead scoring, temperature and lead lifecycle helpers."""

import pytest

from packages.algorithms.src.leads import (
    PHONE_BONUS,
    LeadScoreCalculator,
    advance_nurture_stage,
    classify_source_quality,
    convert_lead,
    rescore_leads,
    summarize_leads,
    temperature_for,
    update_lead_status,
)
from packages.core.src.errors import InvalidTransitionError
from packages.core.src.types import (
    CaseStatus,
    LeadStatus,
    LeadTemperature,
    NurtureStage,
    PipelineStage,
    SourceQuality,
)


class TestLeadScoreCalculator:
    """Tests for LeadScoreCalculator."""

    def test_perfect_referral_lead(self, make_lead, now):
        """Referral, phone, 250-char message, 10h old → 20+30+15+15+20 = 100."""
        lead = make_lead(origin="referral", phone="3001234567", message="x" * 250, hours_ago=10)
        calculator = LeadScoreCalculator()
        assert calculator.score(lead, now) == 100
        assert calculator.temperature(lead, now) == LeadTemperature.HOT

    def test_bare_lead_gets_base(self, make_lead, now):
        """Unknown origin, no phone, short message, 4 days old → base 20."""
        lead = make_lead(origin="flyer", message="x" * 50, hours_ago=96)
        calculator = LeadScoreCalculator()
        assert calculator.score(lead, now) == 20
        assert calculator.temperature(lead, now) == LeadTemperature.COLD

    def test_origin_bonuses(self, make_lead, now):
        """Referral > public profile > web > unknown."""
        calculator = LeadScoreCalculator()
        scores = {
            origin: calculator.score(make_lead(origin=origin), now)
            for origin in ["referido", "perfil_publico", "web", "Website", ""]
        }
        assert scores == {
            "referido": 50,
            "perfil_publico": 40,
            "web": 30,
            "Website": 30,
            "": 20,
        }

    def test_message_tiers(self, make_lead, now):
        """Messages over 100 and 200 characters earn 10 and 15."""
        calculator = LeadScoreCalculator()
        assert calculator.score(make_lead(message="x" * 100), now) == 20
        assert calculator.score(make_lead(message="x" * 101), now) == 30
        assert calculator.score(make_lead(message="x" * 200), now) == 30
        assert calculator.score(make_lead(message="x" * 201), now) == 35

    def test_message_length_counts_code_points(self):
        """Each emoji counts as one character toward the length tiers."""
        calculator = LeadScoreCalculator()
        assert calculator.message_bonus("\N{GRINNING FACE}" * 100) == 0
        assert calculator.message_bonus("\N{GRINNING FACE}" * 101) == 10

    def test_recency_tiers(self, make_lead, now):
        """Leads under 24h earn 20, under 72h earn 10."""
        calculator = LeadScoreCalculator()
        assert calculator.score(make_lead(hours_ago=23.9), now) == 40
        assert calculator.score(make_lead(hours_ago=24), now) == 30
        assert calculator.score(make_lead(hours_ago=71.9), now) == 30
        assert calculator.score(make_lead(hours_ago=72), now) == 20

    def test_phone_adds_exactly_fifteen(self, make_lead, now):
        """Adding a phone never lowers the score and adds 15 before the cap."""
        calculator = LeadScoreCalculator()
        without = make_lead(origin="web", message="x" * 150)
        with_phone = without.model_copy(update={"phone": "555-0100"})
        assert calculator.score(with_phone, now) - calculator.score(without, now) == PHONE_BONUS

    def test_phone_bonus_respects_cap(self, make_lead, now):
        """At the cap, adding a phone keeps the score at 100."""
        calculator = LeadScoreCalculator()
        lead = make_lead(origin="referral", message="x" * 300, hours_ago=1)
        assert calculator.score(lead, now) == 85
        assert calculator.score(lead.model_copy(update={"phone": "1"}), now) == 100

    def test_blank_phone_earns_nothing(self, make_lead, now):
        """Whitespace-only phone is not contact information."""
        assert LeadScoreCalculator().score(make_lead(phone="   "), now) == 20

    def test_score_bounds_and_idempotence(self, make_lead, now):
        """Scores stay in [0, 100] and repeat exactly."""
        calculator = LeadScoreCalculator()
        for origin in ["referral", "profile", "web", "other"]:
            for hours in [1, 30, 200]:
                lead = make_lead(origin=origin, phone="1", message="y" * 500, hours_ago=hours)
                score = calculator.score(lead, now)
                assert 0 <= score <= 100
                assert score == calculator.score(lead, now)

    def test_explain_reasons(self, make_lead, now):
        """Breakdown attributes every bonus."""
        lead = make_lead(origin="profile", phone="1", message="x" * 120, hours_ago=50)
        breakdown = LeadScoreCalculator().explain(lead, now)
        assert breakdown.adjustments == {
            "origin": 20.0,
            "phone": 15.0,
            "message": 10.0,
            "recency": 10.0,
        }
        assert breakdown.score == 75
        assert len(breakdown.reasons) == 4


class TestTemperatureAndSource:
    """Tests for temperature bands and source quality."""

    def test_temperature_edges(self):
        """Bands split at 40 and 70."""
        assert temperature_for(39) == LeadTemperature.COLD
        assert temperature_for(40) == LeadTemperature.WARM
        assert temperature_for(69) == LeadTemperature.WARM
        assert temperature_for(70) == LeadTemperature.HOT

    def test_source_quality(self):
        """Channel tags map to quality tiers."""
        assert classify_source_quality("Referral") == SourceQuality.EXCELLENT
        assert classify_source_quality("perfil_publico") == SourceQuality.GOOD
        assert classify_source_quality("web") == SourceQuality.AVERAGE
        assert classify_source_quality(None) == SourceQuality.UNKNOWN

    def test_summarize_leads(self, make_lead, now):
        """Leads are counted per temperature."""
        leads = [
            make_lead("a", origin="referral", phone="1", message="x" * 250, hours_ago=2),
            make_lead("b", origin="referral", hours_ago=50),
            make_lead("c"),
        ]
        assert summarize_leads(leads, now) == {"total": 3, "hot": 1, "warm": 1, "cold": 1}


class TestLeadLifecycle:
    """Tests for status, nurture and conversion helpers."""

    def test_status_update_returns_copy(self, make_lead):
        """Status change leaves the original snapshot untouched."""
        lead = make_lead()
        updated = update_lead_status(lead, "qualified")
        assert updated.status == LeadStatus.QUALIFIED
        assert lead.status == LeadStatus.NEW

    def test_terminal_status_is_final(self, make_lead):
        """Converted and lost leads cannot change status."""
        lost = make_lead(status="lost")
        with pytest.raises(InvalidTransitionError) as exc_info:
            update_lead_status(lost, LeadStatus.CONTACTED)
        assert exc_info.value.code == "INVALID_TRANSITION"

    def test_nurture_advances_in_order(self, make_lead):
        """Each step moves one stage forward and stops at negotiation."""
        lead = make_lead()
        seen = [lead.nurture_stage]
        for _ in range(7):
            lead = advance_nurture_stage(lead)
            seen.append(lead.nurture_stage)
        assert seen[:6] == list(NurtureStage)
        assert seen[-1] == NurtureStage.NEGOTIATION

    def test_nurture_rejected_for_closed_lead(self, make_lead):
        """Converted leads leave the nurture sequence."""
        with pytest.raises(InvalidTransitionError):
            advance_nurture_stage(make_lead(status="converted"))

    def test_convert_lead(self, make_lead):
        """Conversion yields a client and an opening case."""
        lead = make_lead(name="Ana Ruiz", email="ana@example.com", estimated_case_value=2_000_000)
        converted, client, case = convert_lead(lead, client_id="cl-9", case_id="cs-9")
        assert converted.status == LeadStatus.CONVERTED
        assert client.id == "cl-9"
        assert client.name == "Ana Ruiz"
        assert client.engagement_score == 50
        assert case.client_id == "cl-9"
        assert case.title == "Case Ana Ruiz"
        assert case.pipeline_stage == PipelineStage.INICIAL
        assert case.probability == 50
        assert case.expected_value == 2_000_000
        assert case.status == CaseStatus.ACTIVE

    def test_convert_lead_value_override(self, make_lead):
        """Explicit value wins over the lead's estimate."""
        _, _, case = convert_lead(
            make_lead(), client_id="c", case_id="k", case_title="Herencia", estimated_value=10
        )
        assert case.title == "Herencia"
        assert case.expected_value == 10


class TestRescoreLeads:
    """Tests for batch lead rescoring against a store."""

    @pytest.mark.asyncio
    async def test_persists_open_leads(self, make_lead, store, now):
        """Open leads are scored and written; closed leads are skipped."""
        leads = [
            make_lead("a", origin="referral", hours_ago=2, score=10),
            make_lead("b", status="converted"),
        ]
        results = await rescore_leads(leads, store, now)
        assert store.lead_writes == [("a", {"score": 70})]
        assert results == [
            {
                "id": "a",
                "name": "Lead a",
                "previous_score": 10,
                "new_score": 70,
                "source_quality": "excellent",
                "temperature": "hot",
            }
        ]

    @pytest.mark.asyncio
    async def test_failed_write_skips_lead(self, make_lead, store, now):
        """A rejected write drops that lead and continues with the rest."""
        store.failing_leads.add("a")
        results = await rescore_leads([make_lead("a"), make_lead("b")], store, now)
        assert [r["id"] for r in results] == ["b"]
