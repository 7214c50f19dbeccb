"""Underwriting: credit assessment and the final offer (UNDERWRITING).

Entering the stage starts the background assessment and acknowledges the
customer straight away.  The result arrives later as an assessment event
applied by the orchestrator; until then status questions report progress.
"""

from __future__ import annotations

import logging
import secrets
from datetime import datetime, timedelta, timezone
from enum import Enum
from typing import Callable, Optional

from origination import finance
from origination.assessment import (
    APPROVED,
    DEFAULT_REQUESTED_AMOUNT,
    MANUAL_REVIEW,
    REJECTED,
    AssessmentRequest,
)
from origination.extraction import extract_amount, extract_tenure, mentions_amount
from origination.formatting import inr
from origination.intents import Rule, Vocabulary, any_of, keywords, normalize
from origination.models.conversation import ConversationState, Reply, Session, StageTag
from origination.models.customer import UploadedDocument
from origination.stages.base import StageHandler, Tracer

log = logging.getLogger("origination.stages.underwriting")

Scheduler = Callable[[AssessmentRequest], None]


ACCEPT_WORDS = keywords("accept", "yes", "proceed", "agree")


class UnderwritingIntent(str, Enum):
    STATUS = "status"
    ACCEPT = "accept"
    MODIFY = "modify"
    CREDIT = "credit"
    GENERAL = "general"


UNDERWRITING_VOCABULARY = Vocabulary(
    name="underwriting",
    rules=(
        Rule(UnderwritingIntent.STATUS, keywords("status", "progress", "update")),
        # Explicit new terms win over a bare "yes"
        Rule(UnderwritingIntent.MODIFY, any_of(
            lambda t: extract_tenure(t) is not None,
            mentions_amount,
        )),
        Rule(UnderwritingIntent.ACCEPT, ACCEPT_WORDS),
        Rule(UnderwritingIntent.MODIFY,
             keywords("modify", "change", "different", "reduce", "increase", "tenure")),
        Rule(UnderwritingIntent.CREDIT, keywords("credit", "score", "rating", "assessment")),
    ),
    default=UnderwritingIntent.GENERAL,
)

ASSESSMENT_STARTED_TEXT = (
    "Credit assessment in progress.\n\n"
    "I'm now checking your credit profile with the credit bureau to determine "
    "your loan eligibility and terms. This includes:\n\n"
    "- Credit score verification\n"
    "- Payment history analysis\n"
    "- Debt-to-income ratio calculation\n"
    "- Risk assessment\n\n"
    "This will take just a moment..."
)

IN_PROGRESS_TEXT = (
    "Your credit assessment is still in progress. I'm analyzing your credit "
    "profile and calculating the best possible terms for you. This should "
    "complete shortly."
)

TIMING_TEXT = (
    "Our underwriting process is designed to be quick:\n\n"
    "- Credit check: 2-3 minutes\n"
    "- Application review: 10-15 minutes\n"
    "- Final approval: within 24 hours\n"
    "- Fund disbursement: 24-48 hours after acceptance"
)

REJECTION_WORRY_TEXT = (
    "Don't worry! Our approval rates are high, especially for customers with good "
    "credit profiles. Even if the first assessment needs adjustment we can often "
    "find alternatives such as a different amount or tenure."
)


class UnderwritingStage(StageHandler):
    stage = StageTag.UNDERWRITING
    states = (ConversationState.UNDERWRITING,)

    def __init__(self, collaborators, settings=None, tracer: Optional[Tracer] = None,
                 scheduler: Optional[Scheduler] = None) -> None:
        super().__init__(collaborators, settings, tracer)
        self._scheduler = scheduler

    async def enter(self, session: Session) -> Optional[Reply]:
        if session.context.underwriting.assessment_started:
            return None
        return self.start_assessment(session)

    async def handle(
        self,
        session: Session,
        text: str,
        attachment: Optional[UploadedDocument] = None,
    ) -> Reply:
        underwriting = session.context.underwriting
        if not underwriting.assessment_started:
            return self.start_assessment(session)

        intent = self.classify(session, text, UNDERWRITING_VOCABULARY)
        if intent == UnderwritingIntent.STATUS:
            return self._status(session)
        if intent == UnderwritingIntent.ACCEPT:
            return self._accept(session)
        if intent == UnderwritingIntent.MODIFY:
            return self._modify(session, text)
        if intent == UnderwritingIntent.CREDIT:
            return self._credit(session)
        return self._general(text)

    def start_assessment(self, session: Session) -> Reply:
        """Issue a fresh ticket and schedule the background job for it."""
        underwriting = session.context.underwriting
        sales = session.context.sales

        if session.customer is None:
            return self.reply(
                "I need to identify you before I can assess your application. "
                "Please share your registered mobile number."
            )

        underwriting.assessment_started = True
        underwriting.ticket = secrets.token_hex(8)
        underwriting.outcome = None
        underwriting.final_offer = None
        underwriting.credit_assessment = None
        underwriting.approved_limit = None

        request = AssessmentRequest(
            session_id=session.id,
            ticket=underwriting.ticket,
            customer=session.customer,
            requested_amount=sales.requested_amount or DEFAULT_REQUESTED_AMOUNT,
            tenure_months=sales.requested_tenure or self.settings.default_tenure_months,
        )
        if self._scheduler is not None:
            self._scheduler(request)
        log.info("Assessment %s scheduled for session %s", underwriting.ticket, session.id)
        self.trace(session, "assessment_scheduled", {"ticket": underwriting.ticket})
        return self.reply(ASSESSMENT_STARTED_TEXT, processing=True)

    # ── Intents ───────────────────────────────────────────────

    def _status(self, session: Session) -> Reply:
        underwriting = session.context.underwriting
        offer = underwriting.final_offer
        if underwriting.outcome == APPROVED and offer is not None:
            return self.reply(
                "Your loan application status: APPROVED\n\n"
                f"- Approved amount: {inr(offer.amount)}\n"
                f"- Interest rate: {offer.annual_rate}%\n"
                f"- Monthly EMI: {inr(offer.emi)}\n\n"
                f"This offer is valid until {offer.valid_until:%d %b %Y}. "
                "Would you like to accept it?"
            )
        if underwriting.outcome == REJECTED:
            return self.reply(
                "We were unable to approve your application this time. You could apply "
                "for a smaller amount, or reapply once your credit profile improves."
            )
        if underwriting.outcome == MANUAL_REVIEW:
            return self.reply(
                "Your application is with our underwriting team for manual review. "
                "You should hear back within 24 hours."
            )
        return self.reply(IN_PROGRESS_TEXT, processing=True)

    def _accept(self, session: Session) -> Reply:
        underwriting = session.context.underwriting
        offer = underwriting.final_offer
        if underwriting.outcome != APPROVED or offer is None:
            return self.reply(
                "I don't see an approved offer to accept yet. "
                "Let me complete your credit assessment first."
            )

        if offer.valid_until < datetime.now(timezone.utc):
            log.info("Offer %s expired for session %s, reassessing", offer.offer_id, session.id)
            started = self.start_assessment(session)
            return self.reply(
                "That offer has expired, so I'm refreshing your assessment.\n\n" + started.text,
                processing=True,
            )

        underwriting.offer_accepted = True
        underwriting.accepted_at = datetime.now(timezone.utc)
        session.state = ConversationState.DOCUMENT_GENERATION
        log.info("Session %s accepted final offer %s", session.id, offer.offer_id)
        return self.reply(
            "Offer accepted successfully!\n\n"
            "Thank you for accepting our loan offer. I'm now generating your loan "
            "sanction letter and repayment schedule and setting up the disbursement."
        )

    def _modify(self, session: Session, text: str) -> Reply:
        underwriting = session.context.underwriting
        offer = underwriting.final_offer
        if underwriting.outcome != APPROVED or offer is None:
            return self.reply(
                "I need to complete your credit assessment before we can discuss loan "
                "modifications. Let me do that first."
            )

        amount = extract_amount(text)
        tenure = extract_tenure(text)
        limit = underwriting.approved_limit or offer.amount

        if amount is None and tenure is None:
            return self.reply(
                "I understand you'd like to modify the loan terms. Here are the current terms:\n\n"
                f"- Amount: {inr(offer.amount)}\n"
                f"- Tenure: {offer.tenure_months} months\n"
                f"- EMI: {inr(offer.emi)}\n\n"
                f"What would you like to change? I can adjust the amount (up to {inr(limit)}) "
                "or the tenure."
            )

        # Restating the current terms is not a change
        if amount == offer.amount:
            amount = None
        if tenure == offer.tenure_months:
            tenure = None
        if amount is None and tenure is None:
            if ACCEPT_WORDS(normalize(text)):
                return self._accept(session)
            return self.reply(
                "Those are your current terms:\n\n"
                f"- Amount: {inr(offer.amount)}\n"
                f"- Tenure: {offer.tenure_months} months\n"
                f"- Monthly EMI: {inr(offer.emi)}\n\n"
                "Would you like to accept this offer?"
            )

        if amount is not None and amount > limit:
            return self.reply(
                f"Your approved limit is {inr(limit)}. Please choose an amount within it."
            )

        catalog = session.context.sales.catalog_offer
        if amount is not None and catalog is not None and amount < catalog.min_amount:
            return self.reply(
                f"The minimum amount for this loan is {inr(catalog.min_amount)}. "
                f"Please choose an amount between {inr(catalog.min_amount)} and {inr(limit)}."
            )

        if tenure is not None:
            clamped = finance.clamp_tenure(catalog, tenure)
            if clamped != tenure:
                return self.reply(
                    f"This loan can be repaid over {catalog.min_tenure} to "
                    f"{catalog.max_tenure} months. Which tenure would suit you?"
                )

        revised = finance.reprice(
            offer, amount, tenure,
            valid_for=timedelta(days=self.settings.final_offer_validity_days),
        )
        underwriting.final_offer = revised
        self.trace(session, "offer", {"offer_id": revised.offer_id, "amount": revised.amount,
                                      "tenure": revised.tenure_months, "emi": revised.emi})
        return self.reply(
            "Here are your revised terms:\n\n"
            f"- Amount: {inr(revised.amount)}\n"
            f"- Interest rate: {revised.annual_rate}% p.a.\n"
            f"- Tenure: {revised.tenure_months} months\n"
            f"- Monthly EMI: {inr(revised.emi)}\n"
            f"- Total payable: {inr(revised.total_payable)}\n\n"
            "Would you like to accept this offer?"
        )

    def _credit(self, session: Session) -> Reply:
        credit = session.context.underwriting.credit_assessment
        if credit is None:
            return self.reply(
                "I'm still processing your credit assessment. Once complete, I'll share "
                "detailed insights about your credit profile and how it affects your terms."
            )
        return self.reply(
            "Your credit profile summary:\n\n"
            f"- Credit score: {credit.score} ({credit.grade or credit.eligibility})\n"
            f"- Risk assessment: {credit.risk_tier}\n"
            f"- Max eligible amount: {inr(credit.max_amount)}\n"
            f"- Recommended rate: {credit.recommended_rate}% p.a.\n\n"
            "Any specific questions about your credit assessment?"
        )

    def _general(self, text: str) -> Reply:
        lowered = text.casefold()
        if any(w in lowered for w in ("how long", "when", "time")):
            return self.reply(TIMING_TEXT)
        if any(w in lowered for w in ("reject", "deny", "refuse")):
            return self.reply(REJECTION_WORRY_TEXT)
        return self.reply(
            "I'm here to guide you through underwriting. We analyze your credit profile "
            "to find the best loan terms for you. Do you have any questions about the "
            "credit assessment or loan approval?"
        )
