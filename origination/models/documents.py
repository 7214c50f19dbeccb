"""Payloads written to the document sink at issuance."""

from __future__ import annotations

from datetime import date, datetime

from pydantic import BaseModel

from .offer import AmortizationEntry


class SanctionLetter(BaseModel):
    loan_id: str
    issued_at: datetime
    customer_id: str
    customer_name: str
    address: str
    tax_id: str
    account_number: str
    ifsc_code: str
    amount: int
    annual_rate: float
    tenure_months: int
    emi: int
    processing_fee: int
    total_payable: int
    total_interest: int
    disbursement_date: date
    first_emi_date: date
    terms: dict[str, str] = {}
    conditions: list[str] = []


class RepaymentSchedule(BaseModel):
    loan_id: str
    customer_id: str
    amount: int
    annual_rate: float
    emi: int
    rows: list[AmortizationEntry]
