"""Loan arithmetic: EMI, amortization schedules and risk-adjusted pricing.

Every function here is pure and synchronous, so stage handlers and the
background assessment job call them directly without locking.

Amounts are rupees.  EMIs are rounded half-up to the whole rupee; schedule
rows are kept to the paisa (two decimals).
"""

from __future__ import annotations

import calendar
import math
import secrets
from datetime import date, datetime, timedelta, timezone
from typing import Iterable, Optional

from origination.models.offer import (
    PERSONAL_LOAN,
    AmortizationEntry,
    CatalogOffer,
    CreditAssessment,
    EmiQuote,
    LoanOffer,
)

RATE_FLOOR = 9.5
PRIME_SCORE = 800
SUBPRIME_SCORE = 700

DEFAULT_TERMS = {
    "disbursement_time": "24-48 hours",
    "prepayment_charges": "NIL after 12 months",
    "late_payment_charges": "2% per month",
    "documentation": "Minimal documentation required",
}


def round_half_up(value: float) -> int:
    """Round to the nearest whole unit, halves away from zero for positives."""
    return int(math.floor(value + 0.5))


def monthly_rate(annual_rate: float) -> float:
    """Convert an annual percentage rate to a monthly fraction."""
    return annual_rate / 12 / 100


def compute_emi(principal: float, annual_rate: float, tenure_months: int) -> int:
    """Equated monthly installment for a fully amortizing loan.

    ``EMI = P·r·(1+r)^n / ((1+r)^n − 1)`` with ``r`` the monthly rate.  A zero
    rate degenerates to ``P / n``.
    """
    if principal <= 0:
        raise ValueError(f"principal must be positive, got {principal}")
    if tenure_months <= 0:
        raise ValueError(f"tenure must be positive, got {tenure_months}")
    if annual_rate < 0:
        raise ValueError(f"rate must not be negative, got {annual_rate}")

    r = monthly_rate(annual_rate)
    if r == 0:
        return round_half_up(principal / tenure_months)

    growth = (1 + r) ** tenure_months
    return round_half_up(principal * r * growth / (growth - 1))


def quote_emi(principal: float, annual_rate: float, tenure_months: int) -> EmiQuote:
    """EMI plus total payable and total interest over the tenure."""
    emi = compute_emi(principal, annual_rate, tenure_months)
    total = emi * tenure_months
    return EmiQuote(
        emi=emi,
        total_amount=total,
        total_interest=total - round_half_up(principal),
    )


def add_months(start: date, months: int) -> date:
    """Same day ``months`` later, clamped to the end of shorter months."""
    index = start.month - 1 + months
    year = start.year + index // 12
    month = index % 12 + 1
    day = min(start.day, calendar.monthrange(year, month)[1])
    return date(year, month, day)


def amortization_schedule(
    principal: float,
    annual_rate: float,
    tenure_months: int,
    emi: Optional[int] = None,
    disbursed_on: Optional[date] = None,
) -> list[AmortizationEntry]:
    """Per-period principal/interest split for the whole tenure.

    The first installment falls one month after disbursement.  Rounding
    drift is absorbed by the final period: its principal is whatever balance
    remains, so the closing balance is exactly zero.
    """
    if emi is None:
        emi = compute_emi(principal, annual_rate, tenure_months)
    if disbursed_on is None:
        disbursed_on = date.today()

    r = monthly_rate(annual_rate)
    balance = round(float(principal), 2)
    rows: list[AmortizationEntry] = []

    for period in range(1, tenure_months + 1):
        interest = round(balance * r, 2)
        if period == tenure_months:
            principal_part = balance
        else:
            principal_part = min(max(round(emi - interest, 2), 0.0), balance)

        balance = round(balance - principal_part, 2)
        if period == tenure_months:
            balance = 0.0

        rows.append(AmortizationEntry(
            period=period,
            due_date=add_months(disbursed_on, period),
            payment=round(principal_part + interest, 2),
            principal=principal_part,
            interest=interest,
            balance=balance,
        ))

    return rows


def adjust_rate(base_rate: float, score: int, floor: float = RATE_FLOOR) -> float:
    """Risk-adjust a catalog rate by bureau score."""
    if score >= PRIME_SCORE:
        rate = max(base_rate - 0.5, floor)
    elif score < SUBPRIME_SCORE:
        rate = base_rate + 1.0
    else:
        rate = base_rate
    return round(rate, 2)


def select_catalog_offer(
    offers: Iterable[CatalogOffer],
    requested_amount: Optional[int] = None,
) -> Optional[CatalogOffer]:
    """Pick the best personal-loan product for a requested amount.

    Among products whose ceiling covers the amount the cheapest rate wins;
    when none covers it, the product with the highest ceiling.
    """
    personal = [o for o in offers if o.product_type == PERSONAL_LOAN]
    if not personal:
        return None

    if requested_amount is not None:
        covering = [o for o in personal if o.max_amount >= requested_amount]
        if covering:
            return min(covering, key=lambda o: o.interest_rate)
        return max(personal, key=lambda o: o.max_amount)

    return min(personal, key=lambda o: o.interest_rate)


def clamp_tenure(catalog: Optional[CatalogOffer], tenure_months: int) -> int:
    if catalog is None:
        return tenure_months
    return max(catalog.min_tenure, min(catalog.max_tenure, tenure_months))


def build_offer(
    amount: int,
    annual_rate: float,
    tenure_months: int,
    catalog: Optional[CatalogOffer] = None,
    valid_for: timedelta = timedelta(days=30),
    now: Optional[datetime] = None,
    offer_id: Optional[str] = None,
) -> LoanOffer:
    """Materialize concrete terms, EMI and totals into a LoanOffer."""
    now = now or datetime.now(timezone.utc)
    quote = quote_emi(amount, annual_rate, tenure_months)
    fee_rate = catalog.processing_fee_rate if catalog else 0.0

    return LoanOffer(
        offer_id=offer_id or f"OFR_{secrets.token_hex(4).upper()}",
        product_type=catalog.product_type if catalog else PERSONAL_LOAN,
        amount=amount,
        annual_rate=annual_rate,
        tenure_months=tenure_months,
        emi=quote.emi,
        processing_fee_rate=fee_rate,
        processing_fee=round_half_up(amount * fee_rate / 100),
        total_payable=quote.total_amount,
        total_interest=quote.total_interest,
        valid_until=now + valid_for,
        features=list(catalog.features) if catalog else [],
        terms=dict(DEFAULT_TERMS),
    )


def reprice(
    offer: LoanOffer,
    amount: Optional[int] = None,
    tenure_months: Optional[int] = None,
    valid_for: timedelta = timedelta(days=7),
    now: Optional[datetime] = None,
) -> LoanOffer:
    """New offer at the same rate with a different amount and/or tenure."""
    now = now or datetime.now(timezone.utc)
    amount = amount if amount is not None else offer.amount
    tenure = tenure_months if tenure_months is not None else offer.tenure_months
    quote = quote_emi(amount, offer.annual_rate, tenure)

    return offer.model_copy(update={
        "offer_id": f"{offer.offer_id.split('-')[0]}-{secrets.token_hex(2).upper()}",
        "amount": amount,
        "tenure_months": tenure,
        "emi": quote.emi,
        "processing_fee": round_half_up(amount * offer.processing_fee_rate / 100),
        "total_payable": quote.total_amount,
        "total_interest": quote.total_interest,
        "valid_until": now + valid_for,
    })


def risk_adjusted_offer(
    catalog_offers: Iterable[CatalogOffer],
    assessment: CreditAssessment,
    requested_amount: int,
    tenure_months: int,
    now: Optional[datetime] = None,
    rate_floor: float = RATE_FLOOR,
    validity_days: int = 7,
) -> Optional[LoanOffer]:
    """Personalize the best catalog product with the bureau's verdict.

    Returns None when the catalog has no personal-loan product.
    """
    catalog = select_catalog_offer(catalog_offers, requested_amount)
    if catalog is None:
        return None

    amount = min(requested_amount, catalog.max_amount)
    rate = adjust_rate(catalog.interest_rate, assessment.score, rate_floor)
    tenure = clamp_tenure(catalog, tenure_months)

    return build_offer(
        amount=amount,
        annual_rate=rate,
        tenure_months=tenure,
        catalog=catalog,
        valid_for=timedelta(days=validity_days),
        now=now,
        offer_id=f"CUSTOM_{secrets.token_hex(4).upper()}",
    )


def bureau_offer(
    assessment: CreditAssessment,
    requested_amount: int,
    tenure_months: int,
    now: Optional[datetime] = None,
    rate_floor: float = RATE_FLOOR,
    validity_days: int = 7,
) -> Optional[LoanOffer]:
    """Price an offer from the bureau's limits alone.

    Used when the customer has no pre-approved catalog product.  Returns
    None when the bureau grants no amount.
    """
    amount = min(requested_amount, assessment.max_amount)
    if amount <= 0:
        return None
    return build_offer(
        amount=amount,
        annual_rate=adjust_rate(assessment.recommended_rate, assessment.score, rate_floor),
        tenure_months=tenure_months,
        valid_for=timedelta(days=validity_days),
        now=now,
        offer_id=f"CUSTOM_{secrets.token_hex(4).upper()}",
    )
