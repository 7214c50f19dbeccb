"""External collaborator contracts and implementations."""

from __future__ import annotations

from .base import (
    Collaborators,
    CreditBureau,
    CustomerRegistry,
    DocumentSink,
    Envelope,
    OfferCatalog,
    assess_score,
)
from .documents import FileDocumentSink, InMemoryDocumentSink
from .memory import InMemoryCreditBureau, InMemoryCustomerRegistry, InMemoryOfferCatalog

__all__ = [
    "Collaborators",
    "CreditBureau",
    "CustomerRegistry",
    "DocumentSink",
    "Envelope",
    "FileDocumentSink",
    "InMemoryCreditBureau",
    "InMemoryCustomerRegistry",
    "InMemoryDocumentSink",
    "InMemoryOfferCatalog",
    "OfferCatalog",
    "assess_score",
    "build_collaborators",
    "in_memory_collaborators",
]


def in_memory_collaborators() -> Collaborators:
    """Fixture-backed collaborators with an in-memory document sink."""
    return Collaborators(
        registry=InMemoryCustomerRegistry(),
        bureau=InMemoryCreditBureau(),
        catalog=InMemoryOfferCatalog(),
        documents=InMemoryDocumentSink(),
    )


def build_collaborators(mode: str | None = None) -> Collaborators:
    """Build collaborators for the configured mode ("memory" or "http")."""
    from origination.config import settings

    mode = mode or settings.collaborator_mode
    if mode == "memory":
        return in_memory_collaborators()

    from .http import HttpCreditBureau, HttpCustomerRegistry, HttpOfferCatalog

    return Collaborators(
        registry=HttpCustomerRegistry(settings.crm_base_url),
        bureau=HttpCreditBureau(settings.credit_bureau_base_url),
        catalog=HttpOfferCatalog(settings.offers_base_url),
        documents=FileDocumentSink(settings.documents_dir),
    )
