"""Pydantic models for sessions, turns and replies."""

from __future__ import annotations

from datetime import datetime, timezone
from enum import Enum
from typing import Optional

from pydantic import BaseModel, Field

from .context import LoanContext
from .customer import CustomerProfile


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class ConversationState(str, Enum):
    INITIAL = "INITIAL"
    CUSTOMER_IDENTIFICATION = "CUSTOMER_IDENTIFICATION"
    PRODUCT_INQUIRY = "PRODUCT_INQUIRY"
    LOAN_APPLICATION = "LOAN_APPLICATION"
    VERIFICATION = "VERIFICATION"
    UNDERWRITING = "UNDERWRITING"
    DOCUMENT_GENERATION = "DOCUMENT_GENERATION"
    COMPLETED = "COMPLETED"


class Sender(str, Enum):
    USER = "user"
    SYSTEM = "system"


class StageTag(str, Enum):
    """Which handler produced a turn."""

    ORCHESTRATOR = "orchestrator"
    IDENTIFICATION = "identification"
    SALES = "sales"
    VERIFICATION = "verification"
    UNDERWRITING = "underwriting"
    DOCUMENTS = "documents"


class Turn(BaseModel):
    """One entry in the conversation history."""

    sender: Sender
    text: str
    timestamp: datetime = Field(default_factory=utcnow)
    stage: StageTag = StageTag.ORCHESTRATOR


class Reply(BaseModel):
    """What a stage handler hands back to the orchestrator."""

    text: str
    stage: StageTag
    references: dict[str, str] = {}
    processing: bool = False


class ConversationReply(BaseModel):
    """What ``submit`` returns to the conversation-facing caller."""

    session_id: str
    reply_text: str
    sender: Sender = Sender.SYSTEM
    timestamp: str
    stage: StageTag
    state: ConversationState
    suggestions: list[str] = []
    references: Optional[dict[str, str]] = None
    error: bool = False
    processing: bool = False


class Session(BaseModel):
    """One customer's conversation and workflow progress."""

    id: str
    state: ConversationState = ConversationState.INITIAL
    customer: Optional[CustomerProfile] = None
    context: LoanContext = Field(default_factory=LoanContext)
    history: list[Turn] = []
    created_at: datetime = Field(default_factory=utcnow)
    last_active: datetime = Field(default_factory=utcnow)

    def append(self, sender: Sender, text: str, stage: StageTag) -> Turn:
        turn = Turn(sender=sender, text=text, stage=stage)
        self.history.append(turn)
        return turn
