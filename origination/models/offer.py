"""Pydantic models for offers, credit assessments and repayment schedules."""

from __future__ import annotations

from datetime import date, datetime

from pydantic import BaseModel, ConfigDict

PERSONAL_LOAN = "PERSONAL_LOAN"


class CatalogOffer(BaseModel):
    """Pre-approved product template returned by the offer catalog."""

    offer_id: str
    product_type: str = PERSONAL_LOAN
    min_amount: int = 0
    max_amount: int
    interest_rate: float
    processing_fee_rate: float = 0.0
    min_tenure: int = 12
    max_tenure: int = 60
    features: list[str] = []


class EmiQuote(BaseModel):
    """EMI with the totals derived from it."""

    model_config = ConfigDict(frozen=True)

    emi: int
    total_amount: int
    total_interest: int


class LoanOffer(BaseModel):
    """Concrete loan terms. Superseded by a new object, never edited."""

    model_config = ConfigDict(frozen=True)

    offer_id: str
    product_type: str = PERSONAL_LOAN
    amount: int
    annual_rate: float
    tenure_months: int
    emi: int
    processing_fee_rate: float = 0.0
    processing_fee: int = 0
    total_payable: int
    total_interest: int
    valid_until: datetime
    features: list[str] = []
    terms: dict[str, str] = {}


class CreditAssessment(BaseModel):
    """Bureau verdict for one application."""

    model_config = ConfigDict(frozen=True)

    score: int
    grade: str = ""
    risk_tier: str = ""
    eligibility: str = ""
    max_amount: int = 0
    recommended_rate: float = 0.0


class AmortizationEntry(BaseModel):
    """One row of a repayment schedule."""

    model_config = ConfigDict(frozen=True)

    period: int
    due_date: date
    payment: float
    principal: float
    interest: float
    balance: float
