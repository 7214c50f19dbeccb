"""Data models for the origination engine."""

from .context import (
    IdentificationOutput,
    IssuanceOutput,
    LoanContext,
    SalesOutput,
    UnderwritingOutput,
    VerificationOutput,
)
from .conversation import (
    ConversationReply,
    ConversationState,
    Reply,
    Sender,
    Session,
    StageTag,
    Turn,
)
from .customer import CustomerProfile, UploadedDocument
from .documents import RepaymentSchedule, SanctionLetter
from .offer import AmortizationEntry, CatalogOffer, CreditAssessment, EmiQuote, LoanOffer

__all__ = [
    "AmortizationEntry",
    "CatalogOffer",
    "ConversationReply",
    "ConversationState",
    "CreditAssessment",
    "CustomerProfile",
    "EmiQuote",
    "IdentificationOutput",
    "IssuanceOutput",
    "LoanContext",
    "LoanOffer",
    "RepaymentSchedule",
    "Reply",
    "SalesOutput",
    "SanctionLetter",
    "Sender",
    "Session",
    "StageTag",
    "Turn",
    "UnderwritingOutput",
    "UploadedDocument",
    "VerificationOutput",
]
