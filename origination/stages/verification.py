"""KYC verification: identity, address and income, in that order (VERIFICATION).

Each sub-check has its own vocabulary, so a bare "yes" confirms whatever
is currently being asked.  Questions about why we verify, data safety and
document uploads are understood at any point.  The stage hands over to
underwriting only once all three checks have passed.
"""

from __future__ import annotations

import logging
from enum import Enum
from typing import Optional

from origination.extraction import extract_amount
from origination.formatting import inr
from origination.intents import Rule, Vocabulary, keywords
from origination.models.conversation import ConversationState, Reply, Session, StageTag
from origination.models.customer import UploadedDocument
from origination.stages.base import ESCALATION_TEXT, StageHandler

log = logging.getLogger("origination.stages.verification")

# Anything at least this long, sent while the address is pending, is taken as a new address.
MIN_ADDRESS_LENGTH = 20


class VerificationIntent(str, Enum):
    UPLOAD = "upload"
    WHY = "why"
    SAFETY = "safety"
    CONFIRM = "confirm"
    DENY = "deny"
    CHANGED = "changed"
    INCOME = "income"
    OTHER = "other"


COMMON_VOCABULARY = Vocabulary(
    name="verification",
    rules=(
        Rule(VerificationIntent.UPLOAD,
             keywords("upload", "document", "documents", "file", "salary slip",
                      "bank statement", "payslip")),
        Rule(VerificationIntent.WHY, keywords("why", "purpose")),
        Rule(VerificationIntent.SAFETY, keywords("safe", "secure", "security", "privacy")),
    ),
    default=VerificationIntent.OTHER,
)

IDENTITY_VOCABULARY = Vocabulary(
    name="verification.identity",
    rules=(
        Rule(VerificationIntent.CONFIRM,
             keywords("yes", "correct", "confirm", "confirmed", "right", "that's me")),
        Rule(VerificationIntent.DENY,
             keywords("no", "wrong", "incorrect", "different", "changed")),
    ),
    default=VerificationIntent.OTHER,
)

ADDRESS_VOCABULARY = Vocabulary(
    name="verification.address",
    rules=(
        Rule(VerificationIntent.CONFIRM,
             keywords("yes", "correct", "same", "confirm", "right")),
        Rule(VerificationIntent.CHANGED,
             keywords("no", "new", "different", "changed", "moved", "new address")),
    ),
    default=VerificationIntent.OTHER,
)

INCOME_VOCABULARY = Vocabulary(
    name="verification.income",
    rules=(
        Rule(VerificationIntent.INCOME,
             lambda t: extract_amount(t, allow_bare=True) is not None),
    ),
    default=VerificationIntent.OTHER,
)

CHECK_VOCABULARIES = {
    "identity": IDENTITY_VOCABULARY,
    "address": ADDRESS_VOCABULARY,
    "income": INCOME_VOCABULARY,
}

WHY_TEXT = (
    "We verify your details for a few important reasons:\n\n"
    "- Security: protection against fraud and identity theft\n"
    "- Compliance: regulatory requirements for lenders\n"
    "- Faster processing: verified customers get quicker approvals\n\n"
    "Your information is kept secure and encrypted. Shall we continue?"
)

SAFETY_TEXT = (
    "Your data security is our top priority. Everything you share is encrypted "
    "in transit, used only to process your loan, and never shared with third "
    "parties. Ready to continue with verification?"
)

INCOME_QUESTION = (
    "Now let's verify your income. What is your current monthly income? "
    "For example: ₹45,000 or ₹1,20,000 per month."
)


class VerificationStage(StageHandler):
    stage = StageTag.VERIFICATION
    states = (ConversationState.VERIFICATION,)

    async def enter(self, session: Session) -> Optional[Reply]:
        return self._prompt_for(session, session.context.verification.pending_check)

    async def handle(
        self,
        session: Session,
        text: str,
        attachment: Optional[UploadedDocument] = None,
    ) -> Reply:
        verification = session.context.verification
        if session.customer is None:
            return self.reply(
                "I need to identify you before we can verify your details. "
                "Please share your registered mobile number."
            )

        if attachment is not None:
            return self._document_received(session, attachment)

        common = self.classify(session, text, COMMON_VOCABULARY)
        if common == VerificationIntent.UPLOAD:
            return self.reply(
                "I'm ready to receive your document. Please upload your latest salary "
                "slip, bank statement or other income proof (PDF, JPG or PNG)."
            )
        if common == VerificationIntent.WHY:
            return self.reply(WHY_TEXT)
        if common == VerificationIntent.SAFETY:
            return self.reply(SAFETY_TEXT)

        check = verification.pending_check
        if check is None:
            return self._complete(session, "All verifications are complete.")

        intent = self.classify(session, text, CHECK_VOCABULARIES[check])
        if check == "identity":
            return self._identity(session, intent)
        if check == "address":
            return self._address(session, text, intent)
        return self._income(session, text, intent)

    # ── Sub-checks ────────────────────────────────────────────

    def _identity(self, session: Session, intent: str) -> Reply:
        verification = session.context.verification
        if intent == VerificationIntent.CONFIRM:
            verification.identity_verified = True
            self.trace(session, "verified", {"check": "identity"})
            return self.reply(
                f"Thank you for confirming your identity, {session.customer.name}. "
                + self._address_question(session)
            )
        if intent == VerificationIntent.DENY:
            return self._failed(
                session, "identity",
                "For security, details on file can only be changed through a "
                "specialist. If the name, phone and email above are yours, please "
                "reply \"yes\" to confirm them.",
            )
        return self._prompt_for(session, "identity")

    def _address(self, session: Session, text: str, intent: str) -> Reply:
        verification = session.context.verification
        if intent == VerificationIntent.CONFIRM:
            verification.address_verified = True
            self.trace(session, "verified", {"check": "address"})
            return self.reply(f"Great! Address verified. {INCOME_QUESTION}")

        if len(text.strip()) >= MIN_ADDRESS_LENGTH:
            verification.updated_address = text.strip()
            verification.address_verified = True
            self.trace(session, "verified", {"check": "address", "updated": True})
            return self.reply(
                "Thank you for providing your updated address. I've noted it for our "
                f"records. {INCOME_QUESTION}"
            )

        if intent == VerificationIntent.CHANGED:
            return self.reply(
                "I understand you have a new address. Please provide your current "
                "complete address including area, city and pin code."
            )

        return self._failed(
            session, "address",
            "Could you please provide your complete current address? I need the full "
            "address including area, city and pin code.",
        )

    def _income(self, session: Session, text: str, intent: str) -> Reply:
        verification = session.context.verification
        if intent != VerificationIntent.INCOME:
            return self._failed(
                session, "income",
                "Could you please state your monthly income in numbers? For example: "
                "₹45,000 or ₹1,20,000 per month.",
            )

        income = extract_amount(text, allow_bare=True)
        verification.verified_income = income
        if income < self.settings.min_monthly_income:
            return self._failed(
                session, "income",
                f"I see your monthly income is {inr(income)}. Our minimum requirement "
                f"is {inr(self.settings.min_monthly_income)} per month, so I can't "
                "proceed with this application. If your income has changed, please "
                "tell me your current monthly income.",
            )

        verification.income_verified = True
        self.trace(session, "verified", {"check": "income"})
        return self._complete(
            session,
            f"Perfect! Your monthly income of {inr(income)} meets our requirements. "
            "All verifications are complete.",
        )

    def _document_received(self, session: Session, document: UploadedDocument) -> Reply:
        verification = session.context.verification
        verification.documents.append(document)
        log.info("Session %s uploaded %s", session.id, document.file_name)

        on_file = session.customer.monthly_income
        if (
            verification.pending_check == "income"
            and on_file is not None
            and on_file >= self.settings.min_monthly_income
        ):
            verification.verified_income = on_file
            verification.income_verified = True
            self.trace(session, "verified", {"check": "income", "document": document.file_name})
            return self._complete(
                session,
                f"Document uploaded successfully! I've received your {document.file_name} "
                "and your income is verified. All verification steps are now complete.",
            )

        text = (
            f"Document uploaded successfully! I've received your {document.file_name}. "
            "Let me complete the remaining verification steps."
        )
        prompt = self._prompt_for(session, verification.pending_check)
        if prompt is not None:
            text = f"{text}\n\n{prompt.text}"
        return self.reply(text)

    # ── Helpers ───────────────────────────────────────────────

    def _prompt_for(self, session: Session, check: Optional[str]) -> Optional[Reply]:
        customer = session.customer
        if customer is None:
            return self.reply(
                "I need to verify your identity first. Please share your registered "
                "mobile number."
            )
        if check == "identity":
            return self.reply(
                "To proceed with your loan application, I need to verify your identity. "
                "I have these details on file:\n\n"
                f"- Name: {customer.name}\n"
                f"- Phone: {customer.phone}\n"
                f"- Email: {customer.email}\n\n"
                "Is this information correct?"
            )
        if check == "address":
            return self.reply(self._address_question(session))
        if check == "income":
            return self.reply(INCOME_QUESTION)
        return None

    def _address_question(self, session: Session) -> str:
        return (
            "Now I need to verify your current address. Is your address still:\n\n"
            f"{session.customer.address}\n\n"
            "Please confirm if this is correct or provide your updated address."
        )

    def _failed(self, session: Session, check: str, text: str) -> Reply:
        verification = session.context.verification
        if self.count_attempt(verification.attempts, check):
            verification.escalations += 1
            log.warning("Verification of %s escalated for session %s", check, session.id)
            self.trace(session, "escalation", {"check": check})
            return self.reply(ESCALATION_TEXT)
        return self.reply(text)

    def _complete(self, session: Session, text: str) -> Reply:
        session.state = ConversationState.UNDERWRITING
        log.info("Session %s verified, moving to underwriting", session.id)
        return self.reply(text)
