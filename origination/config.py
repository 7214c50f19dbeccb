"""Application configuration via environment variables."""

from __future__ import annotations

import logging

from pydantic_settings import BaseSettings

log = logging.getLogger("origination.config")


class Settings(BaseSettings):
    # Collaborators: "memory" uses the seeded fixtures, "http" the mock APIs
    collaborator_mode: str = "memory"
    crm_base_url: str = "http://localhost:5000/api/mock/crm"
    credit_bureau_base_url: str = "http://localhost:5000/api/mock/credit-bureau"
    offers_base_url: str = "http://localhost:5000/api/mock/offers"
    calculator_base_url: str = "http://localhost:5000/api/mock/calculator"
    collaborator_timeout: float = 15.0

    # Document sink
    documents_dir: str = "uploads/generated"

    # Sessions
    session_ttl_seconds: int = 3600
    max_sessions: int = 10_000

    # Underwriting
    assessment_delay_seconds: float = 3.0

    # Business rules
    max_stage_attempts: int = 3
    min_monthly_income: int = 15_000
    default_tenure_months: int = 36
    provisional_offer_validity_days: int = 30
    final_offer_validity_days: int = 7
    rate_floor: float = 9.5
    disbursement_lead_days: int = 2

    model_config = {
        "env_file": ".env",
        "env_file_encoding": "utf-8",
        "env_prefix": "ORIGINATION_",
    }

    def validate_startup(self) -> list[str]:
        """Validate configuration at startup. Returns warnings, raises on errors."""
        warnings: list[str] = []

        if self.collaborator_mode not in ("memory", "http"):
            raise ValueError(
                f"COLLABORATOR_MODE must be 'memory' or 'http', "
                f"got {self.collaborator_mode!r}."
            )

        if self.max_stage_attempts < 1:
            raise ValueError("MAX_STAGE_ATTEMPTS must be at least 1.")

        if self.default_tenure_months < 1:
            raise ValueError("DEFAULT_TENURE_MONTHS must be at least 1.")

        if self.session_ttl_seconds <= 0:
            warnings.append(
                "SESSION_TTL_SECONDS is not positive. Sessions are never evicted by age."
            )

        if self.collaborator_mode == "memory":
            warnings.append(
                "Using in-memory collaborators. Customer, bureau and offer data are fixtures."
            )

        if self.assessment_delay_seconds > 30:
            warnings.append(
                "ASSESSMENT_DELAY_SECONDS is over 30s; customers will wait a long time."
            )

        return warnings


settings = Settings()

# Runtime-mutable tunables (console runner can change these)
runtime_settings = {
    # Echo trace events to the console while chatting
    "trace_events": False,
    # Show the state name next to every reply
    "show_state": True,
}
