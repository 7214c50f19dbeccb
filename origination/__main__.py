"""Console runner: chat with the engine in a terminal.

    python -m origination

Type ``upload <file name>`` to simulate a document upload, ``history`` to
print the transcript, ``trace`` to toggle event echo and ``quit`` to exit.
"""

from __future__ import annotations

# Load .env before settings are read
from dotenv import load_dotenv
load_dotenv()

import asyncio
import logging

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s %(name)-20s %(levelname)-7s %(message)s",
)

from origination.collaborators import build_collaborators
from origination.config import runtime_settings, settings
from origination.debug_events import get_broadcaster
from origination.models.customer import UploadedDocument
from origination.orchestrator import ConversationOrchestrator

log = logging.getLogger("origination.console")

EXIT_WORDS = {"quit", "exit", "stop"}


def _print_reply(reply, show_state: bool) -> None:
    prefix = f"[{reply.state.value}] " if show_state else ""
    print(f"\n{prefix}{reply.reply_text}")
    if reply.processing:
        print("  (working on it...)")
    if reply.references:
        for kind, ref in reply.references.items():
            print(f"  {kind}: {ref}")
    if reply.suggestions:
        print(f"  suggestions: {' | '.join(reply.suggestions)}")


async def _echo_trace(queue: asyncio.Queue) -> None:
    while True:
        event = await queue.get()
        if runtime_settings["trace_events"]:
            print(f"  · {event['type']} {event['state']} {event['data']}")


async def main() -> None:
    for warning in settings.validate_startup():
        log.warning(warning)

    orchestrator = ConversationOrchestrator(collaborators=build_collaborators())
    session_id = orchestrator.store.create().id
    echo = asyncio.create_task(_echo_trace(get_broadcaster(session_id).subscribe()))
    seen = 0

    print("Loan assistant ready. Say hello, or 'quit' to exit.")
    try:
        while True:
            try:
                line = await asyncio.to_thread(input, "\nyou> ")
            except EOFError:
                break
            line = line.strip()
            if not line:
                continue
            if line.lower() in EXIT_WORDS:
                break
            if line.lower() == "trace":
                runtime_settings["trace_events"] = not runtime_settings["trace_events"]
                print(f"trace events {'on' if runtime_settings['trace_events'] else 'off'}")
                continue
            if line.lower() == "history":
                for turn in orchestrator.history(session_id):
                    print(f"  {turn.sender.value:>6}: {turn.text.splitlines()[0]}")
                continue

            attachment = None
            if line.lower().startswith("upload "):
                name = line[len("upload "):].strip()
                attachment = UploadedDocument(file_name=name, file_type=name.rsplit(".", 1)[-1])

            reply = await orchestrator.submit(session_id, line, attachment)
            _print_reply(reply, runtime_settings["show_state"])
            seen = len(orchestrator.history(session_id))

            # Assessment results arrive out of band
            if orchestrator.settings.assessment_delay_seconds <= 5:
                await orchestrator.wait_for_background()
            history = orchestrator.history(session_id)
            for turn in history[seen:]:
                print(f"\n[{turn.stage.value}] {turn.text}")
            seen = len(history)
    finally:
        echo.cancel()

    print("Goodbye!")


if __name__ == "__main__":
    asyncio.run(main())
