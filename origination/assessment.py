"""Out-of-band credit assessment.

Underwriting acknowledges the customer immediately and schedules
``run_assessment`` in the background.  The job queries the bureau and the
offer catalog, prices a risk-adjusted offer and returns an
``AssessmentEvent``.  The orchestrator applies the event to the session only
if the session is still waiting for that exact ticket.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Optional

from origination import finance
from origination.collaborators.base import CreditBureau, OfferCatalog
from origination.formatting import inr
from origination.models.customer import CustomerProfile
from origination.models.offer import CreditAssessment, LoanOffer

log = logging.getLogger("origination.assessment")

APPROVED = "approved"
REJECTED = "rejected"
MANUAL_REVIEW = "manual_review"

DEFAULT_REQUESTED_AMOUNT = 500_000

BUREAU_UNAVAILABLE_TEXT = (
    "I apologize, but I'm having trouble accessing your credit information right "
    "now. Our underwriting team will manually review your application. You should "
    "hear back within 24 hours."
)

ASSESSMENT_ERROR_TEXT = (
    "I encountered an issue during the credit assessment. Our team will review "
    "your application manually and get back to you within 24 hours. Thank you "
    "for your patience!"
)


@dataclass(frozen=True)
class AssessmentRequest:
    session_id: str
    ticket: str
    customer: CustomerProfile
    requested_amount: int
    tenure_months: int


@dataclass(frozen=True)
class AssessmentEvent:
    """Outcome of one background assessment, addressed to a session and ticket."""

    session_id: str
    ticket: str
    outcome: str
    message: str
    assessment: Optional[CreditAssessment] = None
    offer: Optional[LoanOffer] = None
    approved_limit: Optional[int] = None

    @classmethod
    def manual_review(cls, request: AssessmentRequest, message: str) -> "AssessmentEvent":
        return cls(request.session_id, request.ticket, MANUAL_REVIEW, message)


def approval_message(assessment: CreditAssessment, offer: LoanOffer) -> str:
    return (
        "Congratulations! Your loan is APPROVED!\n\n"
        "Your credit profile:\n"
        f"- Credit score: {assessment.score} ({assessment.grade or assessment.eligibility})\n"
        f"- Risk level: {assessment.risk_tier}\n\n"
        "Final loan offer:\n"
        f"- Approved amount: {inr(offer.amount)}\n"
        f"- Interest rate: {offer.annual_rate}% p.a.\n"
        f"- Monthly EMI: {inr(offer.emi)}\n"
        f"- Tenure: {offer.tenure_months} months\n"
        f"- Processing fee: {offer.processing_fee_rate}% ({inr(offer.processing_fee)})\n"
        f"- Total payable: {inr(offer.total_payable)}\n"
        f"- Total interest: {inr(offer.total_interest)}\n\n"
        f"This offer is valid until {offer.valid_until:%d %b %Y} and funds are "
        f"disbursed within {offer.terms.get('disbursement_time', '24-48 hours')}.\n\n"
        "Would you like to accept this offer and proceed to loan sanction?"
    )


def rejection_message(assessment: CreditAssessment) -> str:
    if assessment.score < 550:
        reason = "a credit score below our minimum requirement"
    elif assessment.risk_tier == "HIGH":
        reason = "a high risk profile"
    else:
        reason = "your current credit profile"

    return (
        "Application status update\n\n"
        "After careful review of your credit profile, we're unable to approve your "
        f"loan application at this time due to {reason}.\n\n"
        f"- Credit score: {assessment.score}\n"
        f"- Assessment: {assessment.risk_tier} risk\n\n"
        "You could apply for a smaller amount, or improve your credit score and "
        "reapply in 3-6 months."
    )


async def run_assessment(
    request: AssessmentRequest,
    bureau: CreditBureau,
    catalog: OfferCatalog,
    rate_floor: float = finance.RATE_FLOOR,
    validity_days: int = 7,
) -> AssessmentEvent:
    """Score the customer and price the final offer.

    Collaborator failures come back as a manual-review event; unexpected
    exceptions propagate to the caller.
    """
    customer = request.customer
    if not customer.tax_id:
        log.warning("No tax id on file for %s, sending to manual review", customer.id)
        return AssessmentEvent.manual_review(request, ASSESSMENT_ERROR_TEXT)

    credit = await bureau.check_credit(customer.id, customer.tax_id)
    if not credit.success or credit.data is None:
        log.warning("Bureau check failed for %s: %s", customer.id, credit.message)
        return AssessmentEvent.manual_review(request, BUREAU_UNAVAILABLE_TEXT)

    assessment = credit.data
    log.info("Bureau score for %s: %d (%s)", customer.id, assessment.score, assessment.eligibility)

    if assessment.eligibility == "REJECTED":
        return AssessmentEvent(
            request.session_id, request.ticket, REJECTED,
            rejection_message(assessment), assessment=assessment,
        )

    offers = await catalog.get_pre_approved_offers(customer.id)
    if not offers.success:
        log.warning("Offer lookup failed for %s: %s", customer.id, offers.message)
        return AssessmentEvent.manual_review(request, ASSESSMENT_ERROR_TEXT)

    catalog_offer = finance.select_catalog_offer(offers.data or [], request.requested_amount)
    if catalog_offer is not None:
        offer = finance.risk_adjusted_offer(
            offers.data or [],
            assessment,
            request.requested_amount,
            request.tenure_months,
            rate_floor=rate_floor,
            validity_days=validity_days,
        )
        limit = catalog_offer.max_amount
    else:
        log.info("No pre-approved product for %s, pricing from the bureau", customer.id)
        offer = finance.bureau_offer(
            assessment,
            request.requested_amount,
            request.tenure_months,
            rate_floor=rate_floor,
            validity_days=validity_days,
        )
        limit = assessment.max_amount
    if offer is None:
        return AssessmentEvent(
            request.session_id, request.ticket, REJECTED,
            rejection_message(assessment), assessment=assessment,
        )

    return AssessmentEvent(
        request.session_id,
        request.ticket,
        APPROVED,
        approval_message(assessment, offer),
        assessment=assessment,
        offer=offer,
        approved_limit=limit,
    )
