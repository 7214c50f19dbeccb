"""Typed application context accumulated across stages.

Each stage owns one output struct and is the only writer of it.  Later
stages read earlier outputs through Optional fields and must cope with
``None`` instead of looking up arbitrary keys.
"""

from __future__ import annotations

from datetime import date, datetime
from typing import Optional

from pydantic import BaseModel, Field

from .customer import UploadedDocument
from .offer import AmortizationEntry, CatalogOffer, CreditAssessment, LoanOffer


class IdentificationOutput(BaseModel):
    """Written by the identification stage."""

    attempts: int = 0
    escalations: int = 0


class SalesOutput(BaseModel):
    """Written by the product-inquiry and loan-application stages."""

    requested_amount: Optional[int] = None
    requested_tenure: Optional[int] = None
    catalog_offer: Optional[CatalogOffer] = None
    provisional_offer: Optional[LoanOffer] = None
    proposed_ceiling: Optional[int] = None
    no_preapproved_offers: bool = False


CHECK_ORDER = ("identity", "address", "income")


class VerificationOutput(BaseModel):
    """Written by the verification stage."""

    identity_verified: bool = False
    address_verified: bool = False
    income_verified: bool = False
    verified_income: Optional[int] = None
    updated_address: Optional[str] = None
    documents: list[UploadedDocument] = []
    attempts: dict[str, int] = {}
    escalations: int = 0

    def is_verified(self, check: str) -> bool:
        return getattr(self, f"{check}_verified")

    @property
    def pending_check(self) -> Optional[str]:
        """First sub-check still open, or None once all three passed."""
        for check in CHECK_ORDER:
            if not self.is_verified(check):
                return check
        return None

    @property
    def complete(self) -> bool:
        return self.pending_check is None


class UnderwritingOutput(BaseModel):
    """Written by the underwriting stage and the assessment delivery."""

    assessment_started: bool = False
    ticket: Optional[str] = None
    outcome: Optional[str] = None          # approved | rejected | manual_review
    credit_assessment: Optional[CreditAssessment] = None
    final_offer: Optional[LoanOffer] = None
    approved_limit: Optional[int] = None
    offer_accepted: bool = False
    accepted_at: Optional[datetime] = None


class IssuanceOutput(BaseModel):
    """Written once by the document issuance stage."""

    documents_generated: bool = False
    loan_id: Optional[str] = None
    disbursement_date: Optional[date] = None
    first_emi_date: Optional[date] = None
    schedule: list[AmortizationEntry] = []
    references: dict[str, str] = {}
    generated_at: Optional[datetime] = None
    delivery_requests: list[str] = []


class LoanContext(BaseModel):
    """Aggregate of every stage's output for the current application."""

    identification: IdentificationOutput = Field(default_factory=IdentificationOutput)
    sales: SalesOutput = Field(default_factory=SalesOutput)
    verification: VerificationOutput = Field(default_factory=VerificationOutput)
    underwriting: UnderwritingOutput = Field(default_factory=UnderwritingOutput)
    issuance: IssuanceOutput = Field(default_factory=IssuanceOutput)
