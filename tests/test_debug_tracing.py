"""Tests for conversation tracing: events flow from the orchestrator to subscribers.

These tests verify that:
1. TraceBroadcaster emits events to subscribers
2. Slow subscribers lose their oldest events, not new ones
3. The orchestrator emits message, intent and transition events
"""

import sys
import os

import pytest

sys.path.insert(0, os.path.join(os.path.dirname(__file__), ".."))

from origination.config import Settings
from origination.debug_events import (
    EVENT_LOG_LIMIT,
    SUBSCRIBER_QUEUE_SIZE,
    TraceBroadcaster,
    get_broadcaster,
    has_broadcaster,
    remove_broadcaster,
)
from origination.orchestrator import ConversationOrchestrator


# ── TraceBroadcaster unit tests ─────────────────────────────────────


class TestTraceBroadcaster:
    def test_emit_without_subscribers(self):
        """Emitting with no subscribers should not raise."""
        b = TraceBroadcaster("test-1")
        b.emit("transition", "INITIAL", {"from": "INITIAL", "to": "CUSTOMER_IDENTIFICATION"})
        assert len(b.event_log) == 1

    def test_emit_to_subscriber(self):
        b = TraceBroadcaster("test-2")
        q = b.subscribe()
        b.emit("message", "INITIAL", {"text": "hello"})

        assert not q.empty()
        event = q.get_nowait()
        assert event["type"] == "message"
        assert event["state"] == "INITIAL"
        assert event["data"]["text"] == "hello"
        assert event["session_id"] == "test-2"
        assert "timestamp" in event

    def test_multiple_subscribers(self):
        b = TraceBroadcaster("test-3")
        q1 = b.subscribe()
        q2 = b.subscribe()
        b.emit("intent", "INITIAL", {"intent": "loan_interest"})

        assert q1.get_nowait()["type"] == q2.get_nowait()["type"] == "intent"

    def test_full_queue_drops_oldest(self):
        b = TraceBroadcaster("test-5")
        q = b.subscribe()
        for i in range(SUBSCRIBER_QUEUE_SIZE + 5):
            b.emit("message", "INITIAL", {"n": i})

        assert q.qsize() == SUBSCRIBER_QUEUE_SIZE
        assert q.get_nowait()["data"]["n"] == 5

    def test_event_log_is_bounded(self):
        b = TraceBroadcaster("test-6")
        for i in range(EVENT_LOG_LIMIT + 10):
            b.emit("message", "INITIAL", {"n": i})

        log = b.event_log
        assert len(log) == EVENT_LOG_LIMIT
        assert log[0]["data"]["n"] == 10

    def test_event_log_is_a_copy(self):
        b = TraceBroadcaster("test-7")
        b.emit("message", "INITIAL", {})
        b.event_log.clear()
        assert len(b.event_log) == 1


class TestRegistry:
    def test_get_creates_once(self):
        remove_broadcaster("reg-1")
        assert not has_broadcaster("reg-1")
        b = get_broadcaster("reg-1")
        assert get_broadcaster("reg-1") is b
        remove_broadcaster("reg-1")
        assert not has_broadcaster("reg-1")


# ── Orchestrator integration ────────────────────────────────────────


class TestOrchestratorTracing:
    @pytest.mark.asyncio
    async def test_turn_emits_message_intent_and_transition(self):
        orchestrator = ConversationOrchestrator(settings=Settings(assessment_delay_seconds=0))
        session_id = orchestrator.store.create().id
        q = get_broadcaster(session_id).subscribe()

        await orchestrator.submit(session_id, "I need a personal loan")

        events = []
        while not q.empty():
            events.append(q.get_nowait())
        types = [e["type"] for e in events]

        assert types[0] == "message"
        assert "intent" in types
        transition = next(e for e in events if e["type"] == "transition")
        assert transition["data"] == {
            "from": "INITIAL",
            "to": "CUSTOMER_IDENTIFICATION",
        }

    @pytest.mark.asyncio
    async def test_phone_numbers_are_redacted(self):
        orchestrator = ConversationOrchestrator(settings=Settings(assessment_delay_seconds=0))
        reply = await orchestrator.submit(None, "I need a loan")
        await orchestrator.submit(reply.session_id, "9876543210")

        messages = [e for e in get_broadcaster(reply.session_id).event_log
                    if e["type"] == "message"]
        assert messages[-1]["data"]["text"] == "987***10"

    @pytest.mark.asyncio
    async def test_reset_removes_trace_log(self):
        orchestrator = ConversationOrchestrator(settings=Settings(assessment_delay_seconds=0))
        reply = await orchestrator.submit(None, "hello")
        assert has_broadcaster(reply.session_id)

        assert await orchestrator.reset(reply.session_id) is True
        assert not has_broadcaster(reply.session_id)
