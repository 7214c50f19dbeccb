"""Abstract contracts for the external collaborators.

The engine talks to four outside systems: the customer registry (CRM), the
credit bureau, the pre-approved offer catalog and the document sink.  Each
is an ABC here; in-memory and HTTP implementations live next to it.
Lookups answer with an ``Envelope`` instead of raising, mirroring the
``{success, data | message}`` shape the services speak on the wire.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Generic, Optional, TypeVar

from pydantic import BaseModel

from origination.models.customer import CustomerProfile
from origination.models.offer import CatalogOffer, CreditAssessment, EmiQuote

T = TypeVar("T")


class Envelope(BaseModel, Generic[T]):
    """Success/failure wrapper around a collaborator response."""

    success: bool
    data: Optional[T] = None
    message: str = ""

    @classmethod
    def ok(cls, data: T, message: str = "") -> "Envelope[T]":
        return cls(success=True, data=data, message=message)

    @classmethod
    def fail(cls, message: str) -> "Envelope[T]":
        return cls(success=False, message=message)


# ── Bureau tiering ───────────────────────────────────────────────────

def assess_score(score: int, grade: str = "") -> CreditAssessment:
    """Turn a raw bureau score into eligibility, limits and a recommended rate."""
    if score >= 750:
        eligibility, max_amount, rate = "APPROVED", 1_000_000, 10.5
    elif score >= 650:
        eligibility, max_amount, rate = "CONDITIONAL", 500_000, 12.0
    elif score >= 550:
        eligibility, max_amount, rate = "REVIEW_REQUIRED", 200_000, 14.0
    else:
        eligibility, max_amount, rate = "REJECTED", 0, 15.0

    if score >= 750:
        risk = "LOW"
    elif score >= 650:
        risk = "MEDIUM"
    else:
        risk = "HIGH"

    return CreditAssessment(
        score=score,
        grade=grade,
        risk_tier=risk,
        eligibility=eligibility,
        max_amount=max_amount,
        recommended_rate=rate,
    )


# ── Contracts ────────────────────────────────────────────────────────

class CustomerRegistry(ABC):
    """CRM lookups."""

    @abstractmethod
    async def lookup_by_phone(self, phone: str) -> Envelope[CustomerProfile]:
        """Find the customer registered under a 10-digit mobile number."""


class CreditBureau(ABC):
    """Credit checks."""

    @abstractmethod
    async def check_credit(
        self, customer_id: str, tax_id: str
    ) -> Envelope[CreditAssessment]:
        """Pull the bureau record for a PAN and grade it."""


class OfferCatalog(ABC):
    """Pre-approved offers and the reference EMI calculator."""

    @abstractmethod
    async def get_pre_approved_offers(
        self, customer_id: str
    ) -> Envelope[list[CatalogOffer]]:
        """Return the customer's pre-approved products (possibly empty)."""

    @abstractmethod
    async def compute_emi(
        self, principal: int, annual_rate: float, tenure_months: int
    ) -> Envelope[EmiQuote]:
        """Quote an EMI.  The engine normally uses its own formula instead."""


class DocumentSink(ABC):
    """Storage for rendered documents."""

    @abstractmethod
    async def persist(self, kind: str, payload: bytes) -> str:
        """Store a document and return an opaque reference to it."""


@dataclass
class Collaborators:
    """Bundle of collaborator clients handed to the stage handlers."""

    registry: CustomerRegistry
    bureau: CreditBureau
    catalog: OfferCatalog
    documents: DocumentSink
