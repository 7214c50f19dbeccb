"""Pydantic models for the customer on the other end of the conversation."""

from datetime import datetime
from typing import Optional

from pydantic import BaseModel, ConfigDict


class CustomerProfile(BaseModel):
    """Registry record for an identified customer.

    Populated once by the identification stage and never edited afterwards;
    verification progress lives in the application context instead.
    """

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    id: str
    name: str
    phone: str
    email: str = ""
    address: str = ""
    tax_id: str = ""            # PAN
    national_id: str = ""       # Aadhaar
    date_of_birth: str = ""
    account_number: str = ""
    ifsc_code: str = ""
    kyc_status: str = ""
    risk_profile: str = ""
    employment_type: str = ""
    monthly_income: Optional[int] = None
    company_name: str = ""


class UploadedDocument(BaseModel):
    """A file the customer attached to a message."""

    file_name: str
    file_type: str = ""
    uploaded_at: Optional[datetime] = None
