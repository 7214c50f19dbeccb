"""In-memory collaborators seeded with the demo customer book.

Used by default (``collaborator_mode = "memory"``) and throughout the tests.
The records mirror what the mock CRM, bureau and offer services return.
"""

from __future__ import annotations

import logging
from typing import Optional

from origination import finance
from origination.collaborators.base import (
    CreditBureau,
    CustomerRegistry,
    Envelope,
    OfferCatalog,
    assess_score,
)
from origination.models.customer import CustomerProfile
from origination.models.offer import CatalogOffer, CreditAssessment, EmiQuote

log = logging.getLogger("origination.collaborators.memory")


CUSTOMERS: dict[str, CustomerProfile] = {
    "9876543210": CustomerProfile(
        id="CUST001",
        name="Raj Sharma",
        phone="9876543210",
        email="raj.sharma@email.com",
        address="123 Laxmi Nagar, Delhi, 110092",
        tax_id="ABCDE1234F",
        national_id="1234-5678-9012",
        date_of_birth="1985-03-15",
        account_number="123456789012",
        ifsc_code="HDFC0001234",
        kyc_status="VERIFIED",
        risk_profile="LOW",
        employment_type="SALARIED",
        monthly_income=85_000,
        company_name="Tech Solutions Pvt Ltd",
    ),
    "9876543211": CustomerProfile(
        id="CUST002",
        name="Priya Patel",
        phone="9876543211",
        email="priya.patel@email.com",
        address="456 MG Road, Bangalore, 560001",
        tax_id="FGHIJ5678K",
        national_id="5678-9012-3456",
        date_of_birth="1990-07-22",
        account_number="987654321098",
        ifsc_code="ICICI0005678",
        kyc_status="PENDING",
        risk_profile="MEDIUM",
        employment_type="SELF_EMPLOYED",
        monthly_income=120_000,
        company_name="Patel Enterprises",
    ),
}

# PAN -> (score, grade)
BUREAU_RECORDS: dict[str, tuple[int, str]] = {
    "ABCDE1234F": (820, "EXCELLENT"),
    "FGHIJ5678K": (750, "GOOD"),
}

PRE_APPROVED_OFFERS: dict[str, list[CatalogOffer]] = {
    "CUST001": [
        CatalogOffer(
            offer_id="OFFER001",
            product_type="PERSONAL_LOAN",
            min_amount=100_000,
            max_amount=800_000,
            interest_rate=10.5,
            processing_fee_rate=1.0,
            min_tenure=12,
            max_tenure=60,
            features=[
                "No guarantor required",
                "Quick disbursement in 24 hours",
                "Flexible repayment options",
                "No hidden charges",
            ],
        ),
        CatalogOffer(
            offer_id="OFFER002",
            product_type="BUSINESS_LOAN",
            min_amount=200_000,
            max_amount=1_500_000,
            interest_rate=11.5,
            processing_fee_rate=1.5,
            min_tenure=12,
            max_tenure=72,
            features=[
                "Business expansion support",
                "Competitive interest rates",
                "Doorstep service available",
            ],
        ),
    ],
    "CUST002": [
        CatalogOffer(
            offer_id="OFFER003",
            product_type="PERSONAL_LOAN",
            min_amount=100_000,
            max_amount=600_000,
            interest_rate=12.0,
            processing_fee_rate=1.5,
            min_tenure=12,
            max_tenure=60,
            features=[
                "Special rates for existing customers",
                "Flexible documentation",
                "Quick approval process",
            ],
        ),
    ],
}


class InMemoryCustomerRegistry(CustomerRegistry):
    def __init__(self, customers: Optional[dict[str, CustomerProfile]] = None) -> None:
        self._customers = dict(CUSTOMERS if customers is None else customers)

    async def lookup_by_phone(self, phone: str) -> Envelope[CustomerProfile]:
        customer = self._customers.get(phone)
        if customer is None:
            return Envelope.fail("Customer not found")
        return Envelope.ok(customer)


class InMemoryCreditBureau(CreditBureau):
    def __init__(self, records: Optional[dict[str, tuple[int, str]]] = None) -> None:
        self._records = dict(BUREAU_RECORDS if records is None else records)

    async def check_credit(
        self, customer_id: str, tax_id: str
    ) -> Envelope[CreditAssessment]:
        record = self._records.get(tax_id)
        if record is None:
            log.info("No bureau record for customer %s", customer_id)
            return Envelope.fail("Credit data not found")
        score, grade = record
        return Envelope.ok(assess_score(score, grade))


class InMemoryOfferCatalog(OfferCatalog):
    def __init__(self, offers: Optional[dict[str, list[CatalogOffer]]] = None) -> None:
        self._offers = dict(PRE_APPROVED_OFFERS if offers is None else offers)

    async def get_pre_approved_offers(
        self, customer_id: str
    ) -> Envelope[list[CatalogOffer]]:
        offers = self._offers.get(customer_id)
        if not offers:
            return Envelope.ok([], message="No pre-approved offers available")
        return Envelope.ok(list(offers))

    async def compute_emi(
        self, principal: int, annual_rate: float, tenure_months: int
    ) -> Envelope[EmiQuote]:
        if principal <= 0 or tenure_months <= 0 or annual_rate < 0:
            return Envelope.fail("Principal, interest rate, and tenure are required")
        return Envelope.ok(finance.quote_emi(principal, annual_rate, tenure_months))
