"""Conversation orchestrator. Drives each session through the loan workflow.

For every customer message the orchestrator:
  1. Resolves (or creates) the session and takes its lock
  2. Records the user turn
  3. Dispatches to the handler registered for the current state
  4. Runs the entry hook of every stage the handler moved the session into
  5. Records the reply turn(s) and persists the session
  6. Returns the reply with suggestions for the new state

A handler failure never leaks to the caller: the session's workflow
progress is restored to the snapshot taken before dispatch and a generic
apology is returned.  Background assessment results come back through
``deliver`` and are applied under the same per-session lock.
"""

from __future__ import annotations

import asyncio
import logging
import re
from typing import Any, Optional

from origination.assessment import (
    ASSESSMENT_ERROR_TEXT,
    AssessmentEvent,
    AssessmentRequest,
    run_assessment,
)
from origination.collaborators import Collaborators, in_memory_collaborators
from origination.config import Settings, settings as default_settings
from origination.debug_events import get_broadcaster, has_broadcaster, remove_broadcaster
from origination.models.conversation import (
    ConversationReply,
    ConversationState,
    Reply,
    Sender,
    Session,
    StageTag,
    Turn,
)
from origination.models.customer import UploadedDocument
from origination.stages import StageHandler, build_handlers
from origination.store import SessionStore

log = logging.getLogger("origination.orchestrator")

FAILURE_TEXT = (
    "I apologize, but I'm experiencing some technical difficulties. "
    "Please try again in a moment."
)

RECOVERY_TEXT = (
    "I apologize for the confusion. Let me help you from the beginning. "
    "Are you looking for a personal loan today?"
)

DEFAULT_SUGGESTIONS = ["Help", "Start over", "Contact support"]

SUGGESTIONS: dict[ConversationState, list[str]] = {
    ConversationState.INITIAL: [
        "I need a personal loan", "Check my eligibility", "What are your rates?",
    ],
    ConversationState.CUSTOMER_IDENTIFICATION: [
        "Let me provide my number", "I'm a new customer",
    ],
    ConversationState.PRODUCT_INQUIRY: ["₹2 lakhs", "₹5 lakhs", "₹10 lakhs"],
    ConversationState.LOAN_APPLICATION: [
        "Yes, proceed", "Make it 48 months", "I have questions",
    ],
    ConversationState.VERIFICATION: [
        "Upload documents", "I have questions", "Proceed with verification",
    ],
    ConversationState.UNDERWRITING: ["Check my status", "I have questions", "Proceed"],
    ConversationState.COMPLETED: [
        "Download documents", "Email me documents", "When will I get the money?",
    ],
}

_LONG_DIGITS = re.compile(r"\d{6,}")


def redact_pii(value: str) -> str:
    """Mask PII for logging. Show first 3 and last 2 chars only."""
    if not value or len(value) <= 5:
        return "***"
    return value[:3] + "***" + value[-2:]


def redact_text(text: str) -> str:
    """Mask phone numbers and other long digit runs inside free text."""
    return _LONG_DIGITS.sub(lambda m: redact_pii(m.group(0)), text)


def suggestions_for(state: ConversationState) -> list[str]:
    return list(SUGGESTIONS.get(state, DEFAULT_SUGGESTIONS))


class ConversationOrchestrator:
    """Single entry point for customer messages and assessment deliveries."""

    def __init__(
        self,
        collaborators: Optional[Collaborators] = None,
        store: Optional[SessionStore] = None,
        settings: Optional[Settings] = None,
        handlers: Optional[dict[ConversationState, StageHandler]] = None,
    ) -> None:
        self.settings = settings or default_settings
        self.collaborators = collaborators or in_memory_collaborators()
        self.store = store or SessionStore(
            ttl_seconds=self.settings.session_ttl_seconds,
            max_sessions=self.settings.max_sessions,
        )
        self.store.on_delete(remove_broadcaster)
        if handlers is None:
            handlers = build_handlers(
                self.collaborators,
                self.settings,
                tracer=self._emit,
                scheduler=self._schedule_assessment,
            )

        missing = [s.value for s in ConversationState if s not in handlers]
        if missing:
            raise ValueError(f"No handler registered for state(s): {', '.join(missing)}")
        extra = [str(s) for s in handlers if not isinstance(s, ConversationState)]
        if extra:
            raise ValueError(f"Handlers registered for unknown state(s): {', '.join(extra)}")

        self._handlers = dict(handlers)
        self._tasks: set[asyncio.Task] = set()

    # ── Conversation ──────────────────────────────────────────

    async def submit(
        self,
        session_id: Optional[str],
        text: str,
        attachment: Optional[UploadedDocument] = None,
    ) -> ConversationReply:
        """Process one customer message and return the reply."""
        text = text.strip()
        if not text and attachment is not None:
            text = f"Uploaded {attachment.file_name}"
        if not text:
            raise ValueError("Message text must not be empty")

        if not session_id or self.store.get(session_id) is None:
            session_id = self.store.create(session_id or None).id

        async with self.store.locked(session_id):
            session = self.store.get(session_id)
            if session is None:
                session = self.store.create(session_id)
            return await self._process(session, text, attachment)

    async def _process(
        self,
        session: Session,
        text: str,
        attachment: Optional[UploadedDocument],
    ) -> ConversationReply:
        start_state = session.state
        session.append(Sender.USER, text, StageTag.ORCHESTRATOR)
        log.info("[%s] %s <- %s", session.id, _state_name(start_state), redact_text(text))
        self._emit(session.id, "message", _state_name(start_state), {
            "text": redact_text(text),
            "attachment": attachment.file_name if attachment else None,
        })

        handler = self._handlers.get(start_state)
        if handler is None:
            log.error("Session %s in unknown state %r, resetting", session.id, start_state)
            self._emit(session.id, "error", _state_name(start_state), {"reason": "unknown_state"})
            session.state = ConversationState.INITIAL
            return self._respond(session, [Reply(text=RECOVERY_TEXT, stage=StageTag.ORCHESTRATOR)])

        snapshot = session.model_copy(deep=True)
        try:
            replies = [await handler.handle(session, text, attachment)]
            replies.extend(await self._run_entry_hooks(session, start_state))
        except Exception:
            log.exception("Handler for %s failed on session %s", start_state.value, session.id)
            self._emit(session.id, "error", start_state.value, {"reason": "handler_failure"})
            session.state = snapshot.state
            session.customer = snapshot.customer
            session.context = snapshot.context
            return self._respond(
                session,
                [Reply(text=FAILURE_TEXT, stage=StageTag.ORCHESTRATOR)],
                error=True,
            )

        return self._respond(session, replies)

    async def _run_entry_hooks(
        self, session: Session, previous: ConversationState
    ) -> list[Reply]:
        """Let each newly entered stage open the conversation.

        An entry hook may itself advance the state (issuance completes the
        application), so hooks chain, bounded by the number of states.
        """
        replies: list[Reply] = []
        for _ in range(len(ConversationState)):
            if session.state == previous:
                break
            log.info("FSM advance: %s → %s", previous.value, session.state.value)
            self._emit(session.id, "transition", session.state.value, {
                "from": previous.value,
                "to": session.state.value,
            })
            previous = session.state
            opening = await self._handlers[session.state].enter(session)
            if opening is not None:
                replies.append(opening)
        return replies

    def _respond(
        self,
        session: Session,
        replies: list[Reply],
        error: bool = False,
    ) -> ConversationReply:
        turns: list[Turn] = [session.append(Sender.SYSTEM, r.text, r.stage) for r in replies]
        self.store.put(session)

        references: dict[str, str] = {}
        for r in replies:
            references.update(r.references)

        last = replies[-1]
        return ConversationReply(
            session_id=session.id,
            reply_text="\n\n".join(r.text for r in replies),
            timestamp=turns[-1].timestamp.isoformat(),
            stage=last.stage,
            state=session.state,
            suggestions=suggestions_for(session.state),
            references=references or None,
            error=error,
            processing=last.processing,
        )

    # ── Background assessment ─────────────────────────────────

    def _schedule_assessment(self, request: AssessmentRequest) -> None:
        task = asyncio.create_task(self._assessment_job(request))
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)

    async def _assessment_job(self, request: AssessmentRequest) -> None:
        if self.settings.assessment_delay_seconds > 0:
            await asyncio.sleep(self.settings.assessment_delay_seconds)
        try:
            event = await run_assessment(
                request,
                self.collaborators.bureau,
                self.collaborators.catalog,
                rate_floor=self.settings.rate_floor,
                validity_days=self.settings.final_offer_validity_days,
            )
        except Exception:
            log.exception("Assessment %s failed for session %s", request.ticket, request.session_id)
            event = AssessmentEvent.manual_review(request, ASSESSMENT_ERROR_TEXT)
        await self.deliver(event)

    async def deliver(self, event: AssessmentEvent) -> bool:
        """Apply an assessment result if its session is still waiting for it.

        Returns False when the event is stale: the session is gone, has left
        underwriting, or is waiting on a newer ticket.
        """
        async with self.store.locked(event.session_id):
            session = self.store.get(event.session_id)
            if session is None:
                log.info("Dropping assessment %s: session %s is gone",
                         event.ticket, event.session_id)
                return False

            underwriting = session.context.underwriting
            if (
                session.state != ConversationState.UNDERWRITING
                or underwriting.ticket != event.ticket
                or underwriting.outcome is not None
            ):
                log.info("Dropping stale assessment %s for session %s (state %s)",
                         event.ticket, session.id, _state_name(session.state))
                self._emit(session.id, "assessment_dropped", _state_name(session.state),
                           {"ticket": event.ticket})
                return False

            underwriting.outcome = event.outcome
            underwriting.credit_assessment = event.assessment
            underwriting.final_offer = event.offer
            underwriting.approved_limit = event.approved_limit
            session.append(Sender.SYSTEM, event.message, StageTag.UNDERWRITING)
            self.store.put(session)

            log.info("Assessment %s applied to session %s: %s",
                     event.ticket, session.id, event.outcome)
            self._emit(session.id, "assessment_applied", session.state.value, {
                "ticket": event.ticket,
                "outcome": event.outcome,
            })
            return True

    async def wait_for_background(self) -> None:
        """Wait until every scheduled assessment has been delivered."""
        while True:
            pending = [t for t in self._tasks if not t.done()]
            if not pending:
                return
            await asyncio.gather(*pending, return_exceptions=True)

    # ── Session inspection ────────────────────────────────────

    def history(self, session_id: str) -> list[Turn]:
        session = self.store.get(session_id)
        if session is None:
            raise KeyError(session_id)
        return list(session.history)

    def snapshot(self, session_id: str, detail: bool = False) -> dict[str, Any]:
        """Serialize a session for inspection."""
        session = self.store.get(session_id)
        if session is None:
            raise KeyError(session_id)

        d: dict[str, Any] = {
            "session_id": session.id,
            "state": session.state.value,
            "customer_id": session.customer.id if session.customer else None,
            "created_at": session.created_at.isoformat(),
            "last_active": session.last_active.isoformat(),
            "message_count": len(session.history),
        }
        if detail:
            d["context"] = session.context.model_dump(mode="json")
            d["recent_messages"] = [
                t.model_dump(mode="json") for t in session.history[-6:]
            ]
            if has_broadcaster(session.id):
                d["event_log"] = get_broadcaster(session.id).event_log
        return d

    async def reset(self, session_id: str) -> bool:
        """Forget a session. Pending assessments for it are dropped on delivery."""
        async with self.store.locked(session_id):
            return self.store.delete(session_id)

    def sweep(self) -> list[str]:
        """Evict idle sessions and their trace logs."""
        return self.store.evict_expired()

    # ── Tracing ───────────────────────────────────────────────

    def _emit(self, session_id: str, event_type: str, state: str, data: dict) -> None:
        if session_id not in self.store:
            return
        get_broadcaster(session_id).emit(event_type, state, data)


def _state_name(state: Any) -> str:
    return state.value if isinstance(state, ConversationState) else str(state)
