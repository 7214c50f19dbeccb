"""Post-completion conversation (COMPLETED)."""

from __future__ import annotations

import logging
from enum import Enum
from typing import Optional

from origination.intents import Rule, Vocabulary, keywords
from origination.models.context import LoanContext
from origination.models.conversation import ConversationState, Reply, Session, StageTag
from origination.models.customer import UploadedDocument
from origination.stages.base import StageHandler
from origination.stages.issuance import (
    DOCUMENT_VOCABULARY,
    DocumentIntent,
    DocumentIssuanceStage,
)

log = logging.getLogger("origination.stages.completed")


class CompletedIntent(str, Enum):
    NEW_LOAN = "new_loan"
    OTHER = "other"


COMPLETED_VOCABULARY = Vocabulary(
    name="completed",
    rules=(
        Rule(CompletedIntent.NEW_LOAN,
             keywords("new loan", "another loan", "more money", "apply again")),
    ),
    default=CompletedIntent.OTHER,
)


class CompletedStage(StageHandler):
    """Answer follow-ups, or start over for a new loan with the same customer."""

    stage = StageTag.ORCHESTRATOR
    states = (ConversationState.COMPLETED,)

    def __init__(self, collaborators, settings=None, tracer=None,
                 documents: Optional[DocumentIssuanceStage] = None) -> None:
        super().__init__(collaborators, settings, tracer)
        self._documents = documents or DocumentIssuanceStage(collaborators, settings, tracer)

    async def handle(
        self,
        session: Session,
        text: str,
        attachment: Optional[UploadedDocument] = None,
    ) -> Reply:
        intent = self.classify(session, text, COMPLETED_VOCABULARY)
        if intent == CompletedIntent.NEW_LOAN:
            log.info("Session %s starting a new application", session.id)
            session.context = LoanContext()
            session.state = ConversationState.PRODUCT_INQUIRY
            return self.reply(
                "I'd be happy to help you with another loan application! "
                "How much are you looking to borrow this time?"
            )

        follow_up = self.classify(session, text, DOCUMENT_VOCABULARY)
        if follow_up != DocumentIntent.GENERAL:
            return self._documents.answer(session, text, follow_up)
        return self.reply(
            "Your loan application has been successfully processed! "
            "Is there anything else I can help you with today?"
        )
