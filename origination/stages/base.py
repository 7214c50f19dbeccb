"""Common plumbing for stage handlers.

A stage handler owns one (or, for sales, two) workflow states.  The
orchestrator calls ``handle`` for every message received while the session
is in one of those states, and ``enter`` right after a transition into it.
Handlers mutate the session in place: state, customer and their own slice
of the loan context.  They never touch the history; the orchestrator
appends turns.
"""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from typing import Any, Callable, Optional

from origination.collaborators.base import Collaborators
from origination.config import Settings, settings as default_settings
from origination.intents import Vocabulary, classify
from origination.models.conversation import ConversationState, Reply, Session, StageTag
from origination.models.customer import UploadedDocument

log = logging.getLogger("origination.stages")

# (session_id, event_type, state, data)
Tracer = Callable[[str, str, str, dict], Any]

MANUAL_REVIEW_TEXT = (
    "I apologize, but I'm having trouble reaching one of our systems right now. "
    "Your application is safe and our team will review it manually. "
    "You should hear back within 24 hours."
)

ESCALATION_TEXT = (
    "I'm having trouble confirming this over chat. I've asked one of our loan "
    "specialists to call you back within 24 hours to help. You're welcome to "
    "try again here in the meantime."
)


class StageHandler(ABC):
    """Base class for the per-state handlers."""

    stage: StageTag
    states: tuple[ConversationState, ...] = ()

    def __init__(
        self,
        collaborators: Collaborators,
        settings: Optional[Settings] = None,
        tracer: Optional[Tracer] = None,
    ) -> None:
        self.collaborators = collaborators
        self.settings = settings or default_settings
        self._tracer = tracer

    @abstractmethod
    async def handle(
        self,
        session: Session,
        text: str,
        attachment: Optional[UploadedDocument] = None,
    ) -> Reply:
        """React to one customer message."""

    async def enter(self, session: Session) -> Optional[Reply]:
        """Opening message after a transition into this stage, if any."""
        return None

    # ── Helpers ───────────────────────────────────────────────

    def reply(self, text: str, **kwargs: Any) -> Reply:
        return Reply(text=text, stage=self.stage, **kwargs)

    def manual_review(self) -> Reply:
        return self.reply(MANUAL_REVIEW_TEXT)

    def classify(self, session: Session, text: str, vocabulary: Vocabulary) -> str:
        """Classify and record the resolved intent on the session's trace."""
        tag = classify(text, vocabulary)
        log.debug("[%s] %s intent: %s", session.id, vocabulary.name, tag)
        self.trace(session, "intent", {"vocabulary": vocabulary.name, "intent": str(tag)})
        return tag

    def trace(self, session: Session, event_type: str, data: dict) -> None:
        if self._tracer is not None:
            self._tracer(session.id, event_type, session.state.value, data)

    def count_attempt(self, counters: dict[str, int], key: str) -> bool:
        """Bump a retry counter. True (and reset) once it reaches the cap."""
        counters[key] = counters.get(key, 0) + 1
        if counters[key] >= self.settings.max_stage_attempts:
            counters[key] = 0
            return True
        return False
