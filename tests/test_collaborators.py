"""Tests for the collaborator implementations (in-memory, HTTP and document sinks)."""

import json

import httpx
import pytest

import sys, os
sys.path.insert(0, os.path.join(os.path.dirname(__file__), ".."))

from origination.collaborators import (
    FileDocumentSink,
    InMemoryCreditBureau,
    InMemoryCustomerRegistry,
    InMemoryDocumentSink,
    InMemoryOfferCatalog,
    build_collaborators,
)
from origination.collaborators.http import HttpCreditBureau, HttpCustomerRegistry, HttpOfferCatalog

BASE = "http://mock.local/api/mock"


def _client(handler) -> httpx.AsyncClient:
    return httpx.AsyncClient(transport=httpx.MockTransport(handler))


class TestInMemoryCollaborators:
    @pytest.mark.asyncio
    async def test_registry_lookup(self):
        result = await InMemoryCustomerRegistry().lookup_by_phone("9876543210")
        assert result.success
        assert result.data.id == "CUST001"
        assert result.data.tax_id == "ABCDE1234F"

    @pytest.mark.asyncio
    async def test_registry_unknown_phone(self):
        result = await InMemoryCustomerRegistry().lookup_by_phone("9000000000")
        assert not result.success
        assert result.data is None

    @pytest.mark.asyncio
    async def test_bureau(self):
        result = await InMemoryCreditBureau().check_credit("CUST001", "ABCDE1234F")
        assert result.success
        assert result.data.score == 820
        assert result.data.eligibility == "APPROVED"

        missing = await InMemoryCreditBureau().check_credit("CUST999", "ZZZZZ0000Z")
        assert not missing.success

    @pytest.mark.asyncio
    async def test_catalog(self):
        catalog = InMemoryOfferCatalog()
        result = await catalog.get_pre_approved_offers("CUST001")
        assert [o.offer_id for o in result.data] == ["OFFER001", "OFFER002"]

        empty = await catalog.get_pre_approved_offers("CUST999")
        assert empty.success
        assert empty.data == []

    @pytest.mark.asyncio
    async def test_catalog_emi(self):
        result = await InMemoryOfferCatalog().compute_emi(500_000, 10.5, 36)
        assert result.success
        assert result.data.total_amount == result.data.emi * 36

    def test_build_memory_collaborators(self):
        collaborators = build_collaborators("memory")
        assert isinstance(collaborators.registry, InMemoryCustomerRegistry)
        assert isinstance(collaborators.documents, InMemoryDocumentSink)


class TestDocumentSinks:
    @pytest.mark.asyncio
    async def test_memory_sink(self):
        sink = InMemoryDocumentSink()
        ref = await sink.persist("sanction_letter", b'{"loan_id": "PL1"}')
        assert ref.startswith("sanction_letter_")
        assert sink.fetch(ref) == b'{"loan_id": "PL1"}'
        assert len(sink) == 1

    @pytest.mark.asyncio
    async def test_file_sink(self, tmp_path):
        sink = FileDocumentSink(tmp_path / "generated")
        ref = await sink.persist("repayment_schedule", b'{"rows": []}')
        path = sink.path_for(ref)
        assert path.exists()
        assert json.loads(path.read_text()) == {"rows": []}


class TestHttpCollaborators:
    @pytest.mark.asyncio
    async def test_customer_lookup_maps_wire_fields(self):
        def handler(request: httpx.Request) -> httpx.Response:
            assert request.url.path == "/api/mock/crm/customer/9876543210"
            return httpx.Response(200, json={
                "success": True,
                "data": {
                    "id": "CUST001",
                    "name": "Raj Sharma",
                    "phone": "9876543210",
                    "panCard": "ABCDE1234F",
                    "aadharCard": "1234-5678-9012",
                    "monthlyIncome": 85000,
                    "accountNumber": "123456789012",
                },
            })

        async with _client(handler) as client:
            registry = HttpCustomerRegistry(f"{BASE}/crm", client=client)
            result = await registry.lookup_by_phone("9876543210")

        assert result.success
        assert result.data.tax_id == "ABCDE1234F"
        assert result.data.national_id == "1234-5678-9012"
        assert result.data.monthly_income == 85000

    @pytest.mark.asyncio
    async def test_not_found_body(self):
        def handler(request):
            return httpx.Response(404, json={"success": False, "message": "Customer not found"})

        async with _client(handler) as client:
            result = await HttpCustomerRegistry(f"{BASE}/crm", client=client).lookup_by_phone("1")

        assert not result.success
        assert result.message == "Customer not found"

    @pytest.mark.asyncio
    async def test_transport_error_becomes_failure(self):
        def handler(request):
            raise httpx.ConnectError("refused", request=request)

        async with _client(handler) as client:
            result = await HttpCustomerRegistry(f"{BASE}/crm", client=client).lookup_by_phone("1")

        assert not result.success
        assert "unavailable" in result.message

    @pytest.mark.asyncio
    async def test_non_json_response(self):
        def handler(request):
            return httpx.Response(502, text="Bad Gateway")

        async with _client(handler) as client:
            result = await HttpCreditBureau(f"{BASE}/credit-bureau", client=client).check_credit(
                "CUST001", "ABCDE1234F")

        assert not result.success
        assert "502" in result.message

    @pytest.mark.asyncio
    async def test_bureau_score_is_tiered(self):
        def handler(request):
            assert request.url.path.endswith("/score/ABCDE1234F")
            return httpx.Response(200, json={
                "success": True,
                "data": {"creditScore": 700, "creditGrade": "GOOD"},
            })

        async with _client(handler) as client:
            result = await HttpCreditBureau(f"{BASE}/credit-bureau", client=client).check_credit(
                "CUST001", "ABCDE1234F")

        assert result.data.score == 700
        assert result.data.eligibility == "CONDITIONAL"
        assert result.data.grade == "GOOD"

    @pytest.mark.asyncio
    async def test_offers_and_emi(self):
        def handler(request):
            if request.url.path.endswith("/pre-approved/CUST001"):
                return httpx.Response(200, json={"success": True, "data": [{
                    "offerId": "OFFER001",
                    "productType": "PERSONAL_LOAN",
                    "maxAmount": 800000,
                    "interestRate": 10.5,
                    "processingFee": 1.0,
                }]})
            if request.url.path.endswith("/calculator/emi"):
                body = json.loads(request.content)
                assert body == {"principal": 500000, "interestRate": 10.5, "tenure": 36}
                return httpx.Response(200, json={"success": True, "data": {
                    "emi": 16251, "totalAmount": 585036, "totalInterest": 85036,
                }})
            return httpx.Response(404, json={"success": False, "message": "nope"})

        async with _client(handler) as client:
            catalog = HttpOfferCatalog(f"{BASE}/offers", calculator_url=f"{BASE}/calculator",
                                       client=client)
            offers = await catalog.get_pre_approved_offers("CUST001")
            quote = await catalog.compute_emi(500000, 10.5, 36)

        assert offers.data[0].offer_id == "OFFER001"
        assert offers.data[0].processing_fee_rate == 1.0
        assert quote.data.emi == 16251
