"""Tests for the loan arithmetic: EMI, schedules and risk-adjusted pricing."""

from datetime import date, datetime, timedelta, timezone

import pytest

import sys, os
sys.path.insert(0, os.path.join(os.path.dirname(__file__), ".."))

from origination import finance
from origination.collaborators.base import assess_score
from origination.models.offer import CatalogOffer


def _catalog(**overrides) -> CatalogOffer:
    data = dict(
        offer_id="OFFER001",
        product_type="PERSONAL_LOAN",
        min_amount=100_000,
        max_amount=800_000,
        interest_rate=10.5,
        processing_fee_rate=1.0,
        min_tenure=12,
        max_tenure=60,
    )
    data.update(overrides)
    return CatalogOffer(**data)


class TestComputeEmi:
    def test_reference_loan(self):
        emi = finance.compute_emi(500_000, 10.5, 36)
        assert 16_200 <= emi <= 16_300

    def test_emi_covers_principal(self):
        for principal, rate, tenure in [(500_000, 10.5, 36), (100_000, 14.0, 12),
                                        (800_000, 9.5, 60), (250_000, 12.0, 48)]:
            emi = finance.compute_emi(principal, rate, tenure)
            assert emi * tenure >= principal

    def test_zero_rate_divides_evenly(self):
        assert finance.compute_emi(120_000, 0, 12) == 10_000

    @pytest.mark.parametrize("principal,rate,tenure", [
        (0, 10.5, 36),
        (-1, 10.5, 36),
        (500_000, 10.5, 0),
        (500_000, -1.0, 36),
    ])
    def test_invalid_inputs(self, principal, rate, tenure):
        with pytest.raises(ValueError):
            finance.compute_emi(principal, rate, tenure)

    def test_rounds_half_up(self):
        assert finance.round_half_up(10.5) == 11
        assert finance.round_half_up(10.49) == 10

    def test_quote_totals(self):
        quote = finance.quote_emi(500_000, 10.5, 36)
        assert quote.total_amount == quote.emi * 36
        assert quote.total_interest == quote.total_amount - 500_000


class TestAmortizationSchedule:
    def test_schedule_shape(self):
        rows = finance.amortization_schedule(500_000, 10.5, 36, disbursed_on=date(2024, 1, 10))
        assert len(rows) == 36
        assert [r.period for r in rows] == list(range(1, 37))
        assert rows[0].due_date == date(2024, 2, 10)
        assert rows[-1].due_date == date(2027, 1, 10)

    def test_principal_sums_to_loan_and_closes_at_zero(self):
        rows = finance.amortization_schedule(500_000, 10.5, 36)
        assert sum(r.principal for r in rows) == pytest.approx(500_000, abs=0.01)
        assert rows[-1].balance == 0.0

    def test_installments_equal_emi_until_final(self):
        emi = finance.compute_emi(500_000, 10.5, 36)
        rows = finance.amortization_schedule(500_000, 10.5, 36, emi=emi)
        for row in rows[:-1]:
            assert abs(row.payment - emi) <= 0.01
        assert abs(rows[-1].payment - emi) < 50

    def test_balance_never_increases(self):
        rows = finance.amortization_schedule(250_000, 12.0, 24)
        balances = [r.balance for r in rows]
        assert balances == sorted(balances, reverse=True)

    def test_zero_rate_schedule(self):
        rows = finance.amortization_schedule(120_000, 0, 12)
        assert all(r.interest == 0 for r in rows)
        assert rows[-1].balance == 0.0

    def test_add_months_clamps_to_month_end(self):
        assert finance.add_months(date(2024, 1, 31), 1) == date(2024, 2, 29)
        assert finance.add_months(date(2023, 1, 31), 1) == date(2023, 2, 28)
        assert finance.add_months(date(2024, 11, 15), 3) == date(2025, 2, 15)


class TestRiskAdjustment:
    def test_prime_score_discount(self):
        assert finance.adjust_rate(10.5, 820) == 10.0

    def test_subprime_score_surcharge(self):
        assert finance.adjust_rate(10.5, 600) == 11.5

    def test_middle_band_unchanged(self):
        assert finance.adjust_rate(10.5, 750) == 10.5

    def test_discount_respects_floor(self):
        assert finance.adjust_rate(9.8, 820) == 9.5

    def test_bureau_tiers(self):
        assert assess_score(820).eligibility == "APPROVED"
        assert assess_score(700).eligibility == "CONDITIONAL"
        assert assess_score(600).eligibility == "REVIEW_REQUIRED"
        assert assess_score(500).eligibility == "REJECTED"
        assert assess_score(500).max_amount == 0
        assert assess_score(700).risk_tier == "MEDIUM"


class TestOffers:
    def test_select_prefers_covering_offer_with_lowest_rate(self):
        cheap = _catalog(offer_id="A", max_amount=300_000, interest_rate=9.9)
        wide = _catalog(offer_id="B", max_amount=900_000, interest_rate=11.0)
        business = _catalog(offer_id="C", product_type="BUSINESS_LOAN", interest_rate=8.0)

        assert finance.select_catalog_offer([cheap, wide, business], 200_000).offer_id == "A"
        assert finance.select_catalog_offer([cheap, wide, business], 500_000).offer_id == "B"

    def test_select_falls_back_to_largest_ceiling(self):
        small = _catalog(offer_id="A", max_amount=300_000)
        big = _catalog(offer_id="B", max_amount=600_000)
        assert finance.select_catalog_offer([small, big], 5_000_000).offer_id == "B"

    def test_select_ignores_non_personal_products(self):
        business = _catalog(product_type="BUSINESS_LOAN")
        assert finance.select_catalog_offer([business], 100_000) is None

    def test_build_offer(self):
        now = datetime(2024, 5, 1, tzinfo=timezone.utc)
        offer = finance.build_offer(500_000, 10.5, 36, catalog=_catalog(), now=now)
        assert offer.emi == finance.compute_emi(500_000, 10.5, 36)
        assert offer.processing_fee == 5_000
        assert offer.total_payable == offer.emi * 36
        assert offer.valid_until == now + timedelta(days=30)
        assert offer.offer_id.startswith("OFR_")

    def test_risk_adjusted_offer_caps_amount_and_clamps_tenure(self):
        assessment = assess_score(820, "EXCELLENT")
        offer = finance.risk_adjusted_offer([_catalog()], assessment, 1_000_000, 72)
        assert offer.amount == 800_000
        assert offer.tenure_months == 60
        assert offer.annual_rate == 10.0
        assert offer.offer_id.startswith("CUSTOM_")

    def test_risk_adjusted_offer_without_catalog(self):
        assessment = assess_score(820)
        assert finance.risk_adjusted_offer([], assessment, 500_000, 36) is None

    def test_bureau_offer_prices_from_assessment(self):
        offer = finance.bureau_offer(assess_score(820, "EXCELLENT"), 500_000, 36)
        assert offer.amount == 500_000
        assert offer.annual_rate == 10.0
        assert offer.tenure_months == 36
        assert offer.emi == finance.compute_emi(500_000, 10.0, 36)
        assert offer.offer_id.startswith("CUSTOM_")

    def test_bureau_offer_caps_at_bureau_limit(self):
        offer = finance.bureau_offer(assess_score(680), 900_000, 24)
        assert offer.amount == 500_000
        assert offer.annual_rate == 13.0

    def test_bureau_offer_with_no_limit(self):
        assert finance.bureau_offer(assess_score(520), 500_000, 36) is None

    def test_reprice_keeps_rate(self):
        offer = finance.build_offer(500_000, 10.0, 36, catalog=_catalog())
        revised = finance.reprice(offer, tenure_months=48)
        assert revised.annual_rate == 10.0
        assert revised.tenure_months == 48
        assert revised.amount == 500_000
        assert revised.emi < offer.emi
        assert revised.offer_id != offer.offer_id
