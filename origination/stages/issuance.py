"""Document issuance: sanction letter and repayment schedule (DOCUMENT_GENERATION).

Documents are generated exactly once per application.  Generation writes
both payloads to the document sink and stores only the references in the
session; repeated requests reuse them.
"""

from __future__ import annotations

import logging
import time
from datetime import date, datetime, timedelta, timezone
from enum import Enum
from typing import Optional

from origination import finance
from origination.formatting import inr
from origination.intents import Rule, Vocabulary, keywords, pattern
from origination.models.conversation import ConversationState, Reply, Session, StageTag
from origination.models.customer import UploadedDocument
from origination.models.documents import RepaymentSchedule, SanctionLetter
from origination.stages.base import StageHandler

log = logging.getLogger("origination.stages.issuance")

SANCTION_LETTER = "sanction_letter"
REPAYMENT_SCHEDULE = "repayment_schedule"

SANCTION_CONDITIONS = [
    "This sanction is valid for 7 days from the date of this letter.",
    "Disbursement is subject to execution of the loan agreement.",
    "EMIs are payable by auto-debit from the registered bank account.",
    "Prepayment is permitted without charges after 12 EMIs.",
]


class DocumentIntent(str, Enum):
    DOWNLOAD = "download"
    EMAIL = "email"
    DISBURSEMENT = "disbursement"
    DOCUMENTS = "documents"
    THANKS = "thanks"
    HELP = "help"
    GENERAL = "general"


DOCUMENT_VOCABULARY = Vocabulary(
    name="documents",
    rules=(
        Rule(DocumentIntent.DOWNLOAD, keywords("download", "get documents", "pdf")),
        Rule(DocumentIntent.EMAIL, keywords("email", "e-mail", "send", "mail")),
        Rule(DocumentIntent.DISBURSEMENT,
             pattern(r"\bmoney\b|\bfunds?\b|disburs|\btransfer|when will i get")),
        Rule(DocumentIntent.DOCUMENTS,
             keywords("document", "documents", "paper", "papers", "sanction",
                      "schedule", "what is")),
        Rule(DocumentIntent.THANKS, keywords("thank", "thanks", "thank you", "congratulations")),
        Rule(DocumentIntent.HELP, keywords("help", "support")),
    ),
    default=DocumentIntent.GENERAL,
)

ABOUT_DOCUMENTS_TEXT = (
    "About your loan documents:\n\n"
    "The sanction letter is your official loan approval. It lists every term of "
    "the loan along with the disbursement and first EMI dates.\n\n"
    "The repayment schedule breaks down each monthly EMI into principal and "
    "interest and shows the outstanding balance after every payment.\n\n"
    "Keep both safe for your records. Any specific questions about them?"
)

HELP_TEXT = (
    "I'm here to help! You can ask me about your EMI schedule, your disbursement, "
    "or getting copies of your documents. For anything else our customer service "
    "team is available around the clock on our toll-free number."
)


def new_loan_id() -> str:
    return f"PL{int(time.time() * 1000)}"


class DocumentIssuanceStage(StageHandler):
    stage = StageTag.DOCUMENTS
    states = (ConversationState.DOCUMENT_GENERATION,)

    async def enter(self, session: Session) -> Optional[Reply]:
        return await self.issue(session)

    async def handle(
        self,
        session: Session,
        text: str,
        attachment: Optional[UploadedDocument] = None,
    ) -> Reply:
        if not session.context.issuance.documents_generated:
            return await self.issue(session)
        return self.answer(session, text)

    async def issue(self, session: Session, today: Optional[date] = None) -> Reply:
        """Generate and persist the documents once, then complete the application."""
        issuance = session.context.issuance
        underwriting = session.context.underwriting
        offer = underwriting.final_offer
        customer = session.customer

        if issuance.documents_generated:
            return self._issued_reply(session)

        if offer is None or not underwriting.offer_accepted or customer is None:
            return self.reply(
                "I need a confirmed loan offer before I can generate documents. "
                "Let me check your application status."
            )

        today = today or date.today()
        loan_id = new_loan_id()
        disbursement = today + timedelta(days=self.settings.disbursement_lead_days)
        first_emi = finance.add_months(disbursement, 1)
        schedule = finance.amortization_schedule(
            offer.amount, offer.annual_rate, offer.tenure_months,
            emi=offer.emi, disbursed_on=disbursement,
        )

        letter = SanctionLetter(
            loan_id=loan_id,
            issued_at=datetime.now(timezone.utc),
            customer_id=customer.id,
            customer_name=customer.name,
            address=session.context.verification.updated_address or customer.address,
            tax_id=customer.tax_id,
            account_number=customer.account_number,
            ifsc_code=customer.ifsc_code,
            amount=offer.amount,
            annual_rate=offer.annual_rate,
            tenure_months=offer.tenure_months,
            emi=offer.emi,
            processing_fee=offer.processing_fee,
            total_payable=offer.total_payable,
            total_interest=offer.total_interest,
            disbursement_date=disbursement,
            first_emi_date=first_emi,
            terms=offer.terms,
            conditions=SANCTION_CONDITIONS,
        )
        repayment = RepaymentSchedule(
            loan_id=loan_id,
            customer_id=customer.id,
            amount=offer.amount,
            annual_rate=offer.annual_rate,
            emi=offer.emi,
            rows=schedule,
        )

        sink = self.collaborators.documents
        try:
            references = {
                SANCTION_LETTER: await sink.persist(
                    SANCTION_LETTER, letter.model_dump_json(indent=2).encode("utf-8")),
                REPAYMENT_SCHEDULE: await sink.persist(
                    REPAYMENT_SCHEDULE, repayment.model_dump_json(indent=2).encode("utf-8")),
            }
        except Exception:
            log.exception("Document generation failed for session %s", session.id)
            return self.reply(
                "I encountered an issue while generating your loan documents. Our team "
                "will prepare them manually and email you within 2 hours. Your loan is "
                "still approved and disbursement will continue as planned."
            )

        issuance.documents_generated = True
        issuance.loan_id = loan_id
        issuance.disbursement_date = disbursement
        issuance.first_emi_date = first_emi
        issuance.schedule = schedule
        issuance.references = references
        issuance.generated_at = datetime.now(timezone.utc)
        session.state = ConversationState.COMPLETED
        log.info("Loan %s issued for session %s", loan_id, session.id)
        self.trace(session, "documents_generated", {"loan_id": loan_id, **references})

        return self.reply(
            "Loan documents generated successfully!\n\n"
            "Generated documents:\n"
            "- Loan sanction letter\n"
            "- Repayment schedule\n\n"
            "Loan details:\n"
            f"- Loan ID: {loan_id}\n"
            f"- Amount: {inr(offer.amount)}\n"
            f"- Disbursement: {disbursement:%d %b %Y}\n"
            f"- First EMI due: {first_emi:%d %b %Y}\n\n"
            f"Funds will be transferred to your account {customer.account_number}. "
            "Would you like to download the documents or have them emailed to you?",
            references=dict(references),
        )

    # ── After issuance ────────────────────────────────────────

    def answer(self, session: Session, text: str, intent: Optional[str] = None) -> Reply:
        """Reply to follow-up questions once documents exist."""
        if intent is None:
            intent = self.classify(session, text, DOCUMENT_VOCABULARY)
        issuance = session.context.issuance
        customer = session.customer

        if intent == DocumentIntent.DOWNLOAD:
            return self._issued_reply(session)

        if intent == DocumentIntent.EMAIL:
            if not issuance.documents_generated or customer is None:
                return self.reply("Your documents are still being prepared.")
            issuance.delivery_requests.append(customer.email)
            log.info("Email delivery queued for loan %s", issuance.loan_id)
            return self.reply(
                f"I've queued your loan documents for delivery to {customer.email}. "
                "You'll receive the sanction letter and repayment schedule shortly. "
                "If you don't see them, check your spam folder or ask me for the "
                "download links.",
                references=dict(issuance.references),
            )

        if intent == DocumentIntent.DISBURSEMENT:
            if not issuance.documents_generated or customer is None:
                return self.reply(
                    "I'm still preparing your disbursement details. Once your documents "
                    "are ready I'll tell you exactly when you'll receive the funds."
                )
            return self.reply(
                "Disbursement information:\n\n"
                f"- Account: {customer.account_number}\n"
                f"- IFSC: {customer.ifsc_code}\n"
                f"- Disbursement date: {issuance.disbursement_date:%d %b %Y}\n"
                f"- First EMI due: {issuance.first_emi_date:%d %b %Y}\n\n"
                "You'll get an SMS and an email as soon as the funds are transferred."
            )

        if intent == DocumentIntent.DOCUMENTS:
            return self.reply(ABOUT_DOCUMENTS_TEXT)

        if intent == DocumentIntent.THANKS:
            return self.reply(
                "You're very welcome! It's been a pleasure helping you with your "
                "personal loan. Your loan is approved and set up for disbursement. "
                "Is there anything else I can help you with?"
            )

        if intent == DocumentIntent.HELP:
            return self.reply(HELP_TEXT)

        return self.reply(
            "Your loan process is complete! Your documents are ready and your "
            "disbursement is scheduled. Is there anything else you'd like to know?"
        )

    def _issued_reply(self, session: Session) -> Reply:
        issuance = session.context.issuance
        if not issuance.documents_generated:
            return self.reply(
                "Your documents are still being generated. Please wait a moment."
            )
        return self.reply(
            "Your loan documents are ready:\n\n"
            f"- Sanction letter: {issuance.references[SANCTION_LETTER]}\n"
            f"- Repayment schedule: {issuance.references[REPAYMENT_SCHEDULE]}\n\n"
            "Please save them for your records.",
            references=dict(issuance.references),
        )
