"""HTTP collaborators. Talk to the CRM, bureau and offer services over httpx.

The services answer ``{"success": bool, "data": ..., "message": ...}`` with
camelCase field names; this module maps them onto the engine's models.
Transport problems become failed envelopes rather than exceptions.
"""

from __future__ import annotations

import logging
from typing import Any, Optional

import httpx

from origination.collaborators.base import (
    CreditBureau,
    CustomerRegistry,
    Envelope,
    OfferCatalog,
    assess_score,
)
from origination.config import settings
from origination.models.customer import CustomerProfile
from origination.models.offer import CatalogOffer, CreditAssessment, EmiQuote

log = logging.getLogger("origination.collaborators.http")


class _ServiceClient:
    """Shared request plumbing.

    Pass ``client`` to reuse a connection pool (or a mock transport in
    tests); otherwise a short-lived ``AsyncClient`` is opened per call.
    """

    service_name = "service"

    def __init__(
        self,
        base_url: str,
        timeout: Optional[float] = None,
        client: Optional[httpx.AsyncClient] = None,
    ) -> None:
        self._base_url = base_url.rstrip("/")
        self._timeout = timeout if timeout is not None else settings.collaborator_timeout
        self._client = client

    async def _call(self, method: str, path: str, **kwargs: Any) -> dict:
        url = f"{self._base_url}{path}"
        try:
            if self._client is not None:
                resp = await self._client.request(method, url, **kwargs)
            else:
                async with httpx.AsyncClient(timeout=self._timeout) as client:
                    resp = await client.request(method, url, **kwargs)
        except httpx.ConnectError:
            log.error("%s unreachable at %s", self.service_name, url)
            return {"success": False, "message": f"{self.service_name} is unavailable"}
        except httpx.HTTPError as exc:
            log.error("%s request failed: %s", self.service_name, exc)
            return {"success": False, "message": f"{self.service_name} request failed"}

        try:
            body = resp.json()
        except ValueError:
            body = None

        # 404s from the services still carry a {success: false} body
        if isinstance(body, dict) and "success" in body:
            return body

        return {
            "success": False,
            "message": f"{self.service_name} returned status {resp.status_code}",
        }


def _customer_from_wire(data: dict) -> CustomerProfile:
    return CustomerProfile(
        id=data["id"],
        name=data["name"],
        phone=data.get("phone", ""),
        email=data.get("email", ""),
        address=data.get("address", ""),
        tax_id=data.get("panCard", ""),
        national_id=data.get("aadharCard", ""),
        date_of_birth=data.get("dateOfBirth", ""),
        account_number=data.get("accountNumber", ""),
        ifsc_code=data.get("ifscCode", ""),
        kyc_status=data.get("kycStatus", ""),
        risk_profile=data.get("riskProfile", ""),
        employment_type=data.get("employmentType", ""),
        monthly_income=data.get("monthlyIncome"),
        company_name=data.get("companyName", ""),
    )


def _offer_from_wire(data: dict) -> CatalogOffer:
    return CatalogOffer(
        offer_id=data["offerId"],
        product_type=data.get("productType", "PERSONAL_LOAN"),
        min_amount=data.get("minAmount", 0),
        max_amount=data["maxAmount"],
        interest_rate=data["interestRate"],
        processing_fee_rate=data.get("processingFee", 0.0),
        min_tenure=data.get("minTenure", 12),
        max_tenure=data.get("maxTenure", 60),
        features=data.get("features", []),
    )


class HttpCustomerRegistry(_ServiceClient, CustomerRegistry):
    service_name = "CRM"

    async def lookup_by_phone(self, phone: str) -> Envelope[CustomerProfile]:
        body = await self._call("GET", f"/customer/{phone}")
        if not body.get("success") or not body.get("data"):
            return Envelope.fail(body.get("message") or "Customer lookup failed")
        try:
            return Envelope.ok(_customer_from_wire(body["data"]))
        except (KeyError, ValueError) as exc:
            log.error("Malformed CRM record: %s", exc)
            return Envelope.fail("Customer lookup failed")


class HttpCreditBureau(_ServiceClient, CreditBureau):
    service_name = "Credit bureau"

    async def check_credit(
        self, customer_id: str, tax_id: str
    ) -> Envelope[CreditAssessment]:
        body = await self._call("GET", f"/score/{tax_id}")
        data = body.get("data") or {}
        if not body.get("success") or "creditScore" not in data:
            return Envelope.fail(body.get("message") or "Credit score lookup failed")
        return Envelope.ok(assess_score(int(data["creditScore"]), data.get("creditGrade", "")))


class HttpOfferCatalog(_ServiceClient, OfferCatalog):
    service_name = "Offer service"

    def __init__(
        self,
        base_url: str,
        calculator_url: Optional[str] = None,
        timeout: Optional[float] = None,
        client: Optional[httpx.AsyncClient] = None,
    ) -> None:
        super().__init__(base_url, timeout=timeout, client=client)
        self._calculator_url = (calculator_url or settings.calculator_base_url).rstrip("/")

    async def get_pre_approved_offers(
        self, customer_id: str
    ) -> Envelope[list[CatalogOffer]]:
        body = await self._call("GET", f"/pre-approved/{customer_id}")
        if not body.get("success"):
            return Envelope.fail(body.get("message") or "Offer lookup failed")
        try:
            offers = [_offer_from_wire(o) for o in body.get("data") or []]
        except (KeyError, ValueError) as exc:
            log.error("Malformed offer record: %s", exc)
            return Envelope.fail("Offer lookup failed")
        return Envelope.ok(offers, message=body.get("message", ""))

    async def compute_emi(
        self, principal: int, annual_rate: float, tenure_months: int
    ) -> Envelope[EmiQuote]:
        calculator = _ServiceClient(self._calculator_url, self._timeout, self._client)
        calculator.service_name = "EMI calculator"
        body = await calculator._call(
            "POST",
            "/emi",
            json={
                "principal": principal,
                "interestRate": annual_rate,
                "tenure": tenure_months,
            },
        )
        data = body.get("data") or {}
        if not body.get("success") or "emi" not in data:
            return Envelope.fail(body.get("message") or "EMI calculation failed")
        return Envelope.ok(EmiQuote(
            emi=int(data["emi"]),
            total_amount=int(data["totalAmount"]),
            total_interest=int(data["totalInterest"]),
        ))
