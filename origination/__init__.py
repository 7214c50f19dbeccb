"""Conversational loan-origination engine."""

from origination.orchestrator import ConversationOrchestrator

__all__ = ["ConversationOrchestrator"]
