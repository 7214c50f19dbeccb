"""Greeting and customer identification (INITIAL, CUSTOMER_IDENTIFICATION)."""

from __future__ import annotations

import logging
from enum import Enum
from typing import Optional

from origination.extraction import extract_phone
from origination.intents import Rule, Vocabulary, keywords
from origination.models.conversation import ConversationState, Reply, Session, StageTag
from origination.models.customer import UploadedDocument
from origination.stages.base import ESCALATION_TEXT, StageHandler

log = logging.getLogger("origination.stages.identification")


class GreetingIntent(str, Enum):
    LOAN_INTEREST = "loan_interest"
    OTHER = "other"


class IdentificationIntent(str, Enum):
    PHONE = "phone"
    NEW_CUSTOMER = "new_customer"
    OTHER = "other"


GREETING_VOCABULARY = Vocabulary(
    name="greeting",
    rules=(
        Rule(GreetingIntent.LOAN_INTEREST,
             keywords("loan", "loans", "borrow", "money", "credit", "finance", "emi")),
    ),
    default=GreetingIntent.OTHER,
)

IDENTIFICATION_VOCABULARY = Vocabulary(
    name="identification",
    rules=(
        Rule(IdentificationIntent.PHONE, lambda t: extract_phone(t) is not None),
        Rule(IdentificationIntent.NEW_CUSTOMER,
             keywords("new customer", "not registered", "don't have", "no account")),
    ),
    default=IdentificationIntent.OTHER,
)

ASK_FOR_PHONE = (
    "I'd be happy to help you explore our personal loan options! To get started, "
    "could you please provide your mobile number so I can check for any "
    "pre-approved offers?"
)

WELCOME = (
    "Welcome! I'm your personal loan assistant. I can help you with personal "
    "loans, check your eligibility, and guide you through the application "
    "process. How can I assist you today?"
)


class GreetingStage(StageHandler):
    """Detect loan interest in the opening message."""

    stage = StageTag.ORCHESTRATOR
    states = (ConversationState.INITIAL,)

    async def handle(
        self,
        session: Session,
        text: str,
        attachment: Optional[UploadedDocument] = None,
    ) -> Reply:
        intent = self.classify(session, text, GREETING_VOCABULARY)
        if intent == GreetingIntent.LOAN_INTEREST:
            session.state = ConversationState.CUSTOMER_IDENTIFICATION
            return self.reply(ASK_FOR_PHONE)
        return self.reply(WELCOME)


class IdentificationStage(StageHandler):
    """Resolve the customer from a registered mobile number."""

    stage = StageTag.IDENTIFICATION
    states = (ConversationState.CUSTOMER_IDENTIFICATION,)

    async def handle(
        self,
        session: Session,
        text: str,
        attachment: Optional[UploadedDocument] = None,
    ) -> Reply:
        intent = self.classify(session, text, IDENTIFICATION_VOCABULARY)

        if intent == IdentificationIntent.NEW_CUSTOMER:
            return self.reply(
                "Our instant offers are for customers already registered with us. "
                "If you have a mobile number on file with us, please share it. "
                "Otherwise one of our advisors can help you open an application."
            )

        if intent == IdentificationIntent.OTHER:
            return self._retry(
                session,
                "I need your 10-digit mobile number to check for pre-approved "
                "offers. Please share your registered mobile number.",
            )

        phone = extract_phone(text)
        try:
            result = await self.collaborators.registry.lookup_by_phone(phone)
        except Exception:
            log.exception("Customer lookup failed for session %s", session.id)
            return self.manual_review()

        if not result.success or result.data is None:
            log.info("No customer registered for %s***", phone[:3])
            return self._retry(
                session,
                "I couldn't find a profile registered with this number. Could you "
                "double-check it and share the mobile number you registered with us?",
            )

        customer = result.data
        session.customer = customer
        session.context.identification.attempts = 0
        session.state = ConversationState.PRODUCT_INQUIRY
        log.info("Session %s identified as %s", session.id, customer.id)

        return self.reply(
            f"Thank you! I found your profile, {customer.name}. I can see you have "
            "some excellent pre-approved loan offers. How much would you like to borrow?"
        )

    def _retry(self, session: Session, text: str) -> Reply:
        ident = session.context.identification
        ident.attempts += 1
        if ident.attempts >= self.settings.max_stage_attempts:
            ident.attempts = 0
            ident.escalations += 1
            log.warning("Identification escalated for session %s", session.id)
            self.trace(session, "escalation", {"check": "identification"})
            return self.reply(ESCALATION_TEXT)
        return self.reply(text)
