"""Stage handlers, one per workflow state."""

from __future__ import annotations

from typing import Optional

from origination.collaborators.base import Collaborators
from origination.config import Settings
from origination.models.conversation import ConversationState

from .base import StageHandler, Tracer
from .completed import CompletedStage
from .identification import GreetingStage, IdentificationStage
from .issuance import DocumentIssuanceStage
from .sales import LoanApplicationStage, ProductInquiryStage
from .underwriting import Scheduler, UnderwritingStage
from .verification import VerificationStage

__all__ = [
    "CompletedStage",
    "DocumentIssuanceStage",
    "GreetingStage",
    "IdentificationStage",
    "LoanApplicationStage",
    "ProductInquiryStage",
    "StageHandler",
    "UnderwritingStage",
    "VerificationStage",
    "build_handlers",
]


def build_handlers(
    collaborators: Collaborators,
    settings: Optional[Settings] = None,
    tracer: Optional[Tracer] = None,
    scheduler: Optional[Scheduler] = None,
) -> dict[ConversationState, StageHandler]:
    """The default state -> handler dispatch table."""
    documents = DocumentIssuanceStage(collaborators, settings, tracer)
    handlers: list[StageHandler] = [
        GreetingStage(collaborators, settings, tracer),
        IdentificationStage(collaborators, settings, tracer),
        ProductInquiryStage(collaborators, settings, tracer),
        LoanApplicationStage(collaborators, settings, tracer),
        VerificationStage(collaborators, settings, tracer),
        UnderwritingStage(collaborators, settings, tracer, scheduler=scheduler),
        documents,
        CompletedStage(collaborators, settings, tracer, documents=documents),
    ]
    return {state: handler for handler in handlers for state in handler.states}
