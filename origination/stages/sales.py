"""Sales: product inquiry and the provisional offer (PRODUCT_INQUIRY, LOAN_APPLICATION)."""

from __future__ import annotations

import logging
from datetime import timedelta
from enum import Enum
from typing import Optional

from origination import finance
from origination.extraction import extract_amount, extract_tenure
from origination.formatting import inr, lakhs
from origination.intents import Rule, Vocabulary, keywords
from origination.models.conversation import ConversationState, Reply, Session, StageTag
from origination.models.customer import UploadedDocument
from origination.models.offer import CatalogOffer, LoanOffer
from origination.stages.base import StageHandler

log = logging.getLogger("origination.stages.sales")

# Below this a bare number is more likely a tenure or an income than a loan.
MIN_BARE_AMOUNT = 10_000


def requested_amount(text: str) -> Optional[int]:
    return extract_amount(text, allow_bare=True, bare_minimum=MIN_BARE_AMOUNT)


class InquiryIntent(str, Enum):
    AMOUNT = "amount"
    RATES = "rates"
    COMPARISON = "comparison"
    APPLY = "apply"
    GENERAL = "general"


class ApplicationIntent(str, Enum):
    CHANGE_TENURE = "change_tenure"
    CHANGE_AMOUNT = "change_amount"
    ACCEPT = "accept"
    DECLINE = "decline"
    OTHER = "other"


INQUIRY_VOCABULARY = Vocabulary(
    name="product_inquiry",
    rules=(
        Rule(InquiryIntent.AMOUNT, lambda t: requested_amount(t) is not None),
        Rule(InquiryIntent.RATES, keywords("rate", "rates", "interest", "percentage")),
        Rule(InquiryIntent.COMPARISON, keywords("compare", "better", "versus", "vs")),
        Rule(InquiryIntent.APPLY,
             keywords("apply", "proceed", "yes", "start", "go ahead", "maximum", "max")),
    ),
    default=InquiryIntent.GENERAL,
)

APPLICATION_VOCABULARY = Vocabulary(
    name="loan_application",
    rules=(
        Rule(ApplicationIntent.CHANGE_TENURE, lambda t: extract_tenure(t) is not None),
        Rule(ApplicationIntent.CHANGE_AMOUNT, lambda t: requested_amount(t) is not None),
        Rule(ApplicationIntent.ACCEPT,
             keywords("yes", "proceed", "apply", "accept", "ok", "okay", "sure",
                      "go ahead", "confirm")),
        Rule(ApplicationIntent.DECLINE, keywords("no", "not now", "cancel", "too high")),
    ),
    default=ApplicationIntent.OTHER,
)

RATES_TEXT = (
    "Our personal loan interest rates are highly competitive:\n\n"
    "- Excellent credit (750+): from 10.5% p.a.\n"
    "- Good credit (650-749): from 12.0% p.a.\n"
    "- Fair credit (550-649): from 14.0% p.a.\n\n"
    "Your actual rate depends on your credit profile and loan amount. "
    "Tell me how much you need and I'll work out your EMI."
)

COMPARISON_TEXT = (
    "Here's why customers choose our personal loans:\n\n"
    "- Quick approval in 24 hours\n"
    "- Minimal documentation\n"
    "- Flexible repayment from 12 to 60 months\n"
    "- No hidden charges\n"
    "- Prepayment allowed after 12 months\n\n"
    "Processing fee is just 1-2% of the loan amount. How much would you like to borrow?"
)

ELIGIBILITY_TEXT = (
    "To be eligible you typically need:\n\n"
    "- Age: 21-65 years\n"
    "- Monthly income: ₹15,000+\n"
    "- Employment: salaried or self-employed\n"
    "- Credit score: 550+ preferred\n\n"
    "Since you're already in our system, you likely meet these criteria! "
    "How much would you like to borrow?"
)

DOCUMENTS_TEXT = (
    "We've made documentation simple. You typically need:\n\n"
    "- Income proof: last 3 months' salary slips or 6 months' bank statements\n"
    "- Identity proof: Aadhaar and PAN\n"
    "- Address proof: utility bill or rental agreement\n\n"
    "For pre-approved customers we may need even fewer. How much would you like to borrow?"
)

ASK_AMOUNT = (
    "I'd be happy to help you find the right loan amount! Could you specify how "
    "much you're looking to borrow? For example, ₹2 lakhs, ₹5 lakhs or ₹10 lakhs."
)


def describe_offer(offer: LoanOffer) -> str:
    return (
        f"For a loan of {inr(offer.amount)} at {offer.annual_rate}% interest:\n\n"
        f"- Monthly EMI: {inr(offer.emi)}\n"
        f"- Tenure: {offer.tenure_months} months\n"
        f"- Processing fee: {offer.processing_fee_rate}% ({inr(offer.processing_fee)})\n"
        f"- Total payable: {inr(offer.total_payable)}\n"
        f"- Total interest: {inr(offer.total_interest)}\n\n"
        f"This offer is valid until {offer.valid_until:%d %b %Y}. "
        "Would you like to proceed with this application?"
    )


class _SalesStage(StageHandler):
    stage = StageTag.SALES

    def _provisional_offer(
        self, session: Session, catalog: CatalogOffer, amount: int, tenure: Optional[int] = None
    ) -> LoanOffer:
        sales = session.context.sales
        tenure = finance.clamp_tenure(catalog, tenure or self.settings.default_tenure_months)
        offer = finance.build_offer(
            amount=amount,
            annual_rate=catalog.interest_rate,
            tenure_months=tenure,
            catalog=catalog,
            valid_for=timedelta(days=self.settings.provisional_offer_validity_days),
        )
        sales.catalog_offer = catalog
        sales.requested_amount = amount
        sales.requested_tenure = tenure
        sales.provisional_offer = offer
        sales.proposed_ceiling = None
        session.state = ConversationState.LOAN_APPLICATION
        self.trace(session, "offer", {"offer_id": offer.offer_id, "amount": amount,
                                      "tenure": tenure, "emi": offer.emi})
        return offer

    async def quote_amount(
        self, session: Session, amount: int, tenure: Optional[int] = None
    ) -> Reply:
        """Match a requested amount against the customer's pre-approved products."""
        sales = session.context.sales
        sales.requested_amount = amount
        if tenure:
            sales.requested_tenure = tenure

        if session.customer is None:
            return self.reply(
                "I'll need to find your profile before I can quote an offer. "
                "Please share your registered mobile number."
            )

        try:
            result = await self.collaborators.catalog.get_pre_approved_offers(session.customer.id)
        except Exception:
            log.exception("Offer lookup failed for session %s", session.id)
            return self.manual_review()

        if not result.success:
            log.warning("Offer lookup failed for %s: %s", session.customer.id, result.message)
            return self.manual_review()

        catalog = finance.select_catalog_offer(result.data or [], amount)
        if catalog is None:
            sales.no_preapproved_offers = True
            session.state = ConversationState.VERIFICATION
            return self.reply(
                f"You're looking for {inr(amount)}. You don't have a pre-approved offer "
                "right now, but we can still assess your application. I'll verify a few "
                "details and then run a full credit assessment."
            )

        if amount > catalog.max_amount:
            sales.catalog_offer = catalog
            sales.proposed_ceiling = catalog.max_amount
            return self.reply(
                f"I understand you're looking for {lakhs(amount)}. Based on your profile, "
                f"you're pre-approved for up to {inr(catalog.max_amount)} at "
                f"{catalog.interest_rate}% interest. Would you like to proceed with the "
                "maximum approved amount?"
            )

        if amount < catalog.min_amount:
            return self.reply(
                f"The minimum amount for this loan is {inr(catalog.min_amount)}. "
                "How much would you like to borrow?"
            )

        offer = self._provisional_offer(session, catalog, amount, tenure or sales.requested_tenure)
        return self.reply(f"Perfect! {describe_offer(offer)}")


class ProductInquiryStage(_SalesStage):
    """Answer product questions and turn a stated amount into an offer."""

    states = (ConversationState.PRODUCT_INQUIRY,)

    async def handle(
        self,
        session: Session,
        text: str,
        attachment: Optional[UploadedDocument] = None,
    ) -> Reply:
        intent = self.classify(session, text, INQUIRY_VOCABULARY)
        sales = session.context.sales

        if intent == InquiryIntent.AMOUNT:
            return await self.quote_amount(session, requested_amount(text), extract_tenure(text))
        if intent == InquiryIntent.RATES:
            return self.reply(RATES_TEXT)
        if intent == InquiryIntent.COMPARISON:
            return self.reply(COMPARISON_TEXT)
        if intent == InquiryIntent.APPLY:
            if sales.proposed_ceiling is not None and sales.catalog_offer is not None:
                offer = self._provisional_offer(
                    session, sales.catalog_offer, sales.proposed_ceiling, sales.requested_tenure
                )
                return self.reply(f"Great choice! {describe_offer(offer)}")
            if sales.requested_amount:
                return await self.quote_amount(
                    session, sales.requested_amount, sales.requested_tenure
                )
            return self.reply(ASK_AMOUNT)

        lowered = text.casefold()
        if "eligib" in lowered or "qualify" in lowered:
            return self.reply(ELIGIBILITY_TEXT)
        if "document" in lowered or "paper" in lowered:
            return self.reply(DOCUMENTS_TEXT)
        return self.reply(
            "I'm here to help you find the perfect personal loan! I can help with loan "
            "amounts, interest rates, eligibility checks or starting your application. "
            "What would you like to know?"
        )


class LoanApplicationStage(_SalesStage):
    """Negotiate the provisional offer until the customer accepts it."""

    states = (ConversationState.LOAN_APPLICATION,)

    async def handle(
        self,
        session: Session,
        text: str,
        attachment: Optional[UploadedDocument] = None,
    ) -> Reply:
        intent = self.classify(session, text, APPLICATION_VOCABULARY)
        sales = session.context.sales
        offer = sales.provisional_offer

        if offer is None:
            amount = requested_amount(text)
            if amount is not None:
                return await self.quote_amount(session, amount, extract_tenure(text))
            session.state = ConversationState.PRODUCT_INQUIRY
            return self.reply(
                "I don't have an offer prepared for you yet. " + ASK_AMOUNT
            )

        if intent == ApplicationIntent.CHANGE_TENURE:
            tenure = extract_tenure(text)
            catalog = sales.catalog_offer
            if catalog is not None and not catalog.min_tenure <= tenure <= catalog.max_tenure:
                return self.reply(
                    f"This loan can be repaid over {catalog.min_tenure} to "
                    f"{catalog.max_tenure} months. Which tenure would suit you?"
                )
            amount = requested_amount(text) or offer.amount
            if catalog is None:
                new_offer = finance.reprice(
                    offer, amount, tenure,
                    valid_for=timedelta(days=self.settings.provisional_offer_validity_days),
                )
                sales.provisional_offer = new_offer
                sales.requested_tenure = tenure
            else:
                if amount > catalog.max_amount:
                    amount = catalog.max_amount
                new_offer = self._provisional_offer(session, catalog, amount, tenure)
            return self.reply(f"Here are the revised terms. {describe_offer(new_offer)}")

        if intent == ApplicationIntent.CHANGE_AMOUNT:
            return await self.quote_amount(
                session, requested_amount(text), sales.requested_tenure
            )

        if intent == ApplicationIntent.ACCEPT:
            if sales.proposed_ceiling is not None and sales.catalog_offer is not None:
                offer = self._provisional_offer(
                    session, sales.catalog_offer, sales.proposed_ceiling, sales.requested_tenure
                )
                return self.reply(f"Great choice! {describe_offer(offer)}")
            session.state = ConversationState.VERIFICATION
            log.info("Session %s accepted provisional offer %s", session.id, offer.offer_id)
            return self.reply(
                "Excellent! I'm starting your loan application. To ensure quick "
                "approval, I need to verify a few details first. Let me hand you over "
                "to our verification specialist."
            )

        if intent == ApplicationIntent.DECLINE:
            return self.reply(
                "No problem. Would you like a different loan amount or a longer or "
                "shorter tenure? For example, say \"make it 48 months\" or \"₹3 lakhs\"."
            )

        return self.reply(f"Here's your current offer. {describe_offer(offer)}")
