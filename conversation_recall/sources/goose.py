"""Goose session source."""

import json
import logging
from pathlib import Path
from typing import Optional

from ..errors import RecordParseError
from ..models import GOOSE, Exchange
from . import register_source
from .base import Message, SessionStoreSource, epoch_to_date, extract_text_content, pair_messages

logger = logging.getLogger(__name__)


def _parse_message_line(line: str, line_num: int) -> Message:
    try:
        data = json.loads(line)
    except json.JSONDecodeError as e:
        raise RecordParseError(f"line {line_num}: {e}") from e
    if not isinstance(data, dict):
        raise RecordParseError(f"line {line_num}: expected a JSON object")

    created = data.get("created")
    if not isinstance(created, (int, float)):
        raise RecordParseError(f"line {line_num}: missing created time")

    return Message(
        role=data.get("role", ""),
        text=extract_text_content(data.get("content")),
        timestamp=epoch_to_date(created),
        id=str(created),
        line_start=line_num,
        line_end=line_num,
    )


@register_source
class GooseSource(SessionStoreSource):
    """Source for Goose sessions: one JSONL file per session.

    The first line holds session metadata (working_dir, description, token
    counts); every following line is one message.
    """

    name = GOOSE
    display_name = "Goose"
    icon = "🪿"
    color = "yellow"

    def get_sessions_dir(self) -> Path:
        return self.config.goose_sessions_dir

    def list_raw_sessions(self) -> list[Path]:
        sessions_dir = self.get_sessions_dir()
        if not sessions_dir.exists():
            return []
        return sorted(p for p in sessions_dir.glob("*.jsonl") if p.is_file())

    def load_session(self, handle: Path) -> Optional[tuple[dict, list[Message]]]:
        try:
            with open(handle) as f:
                lines = f.read().splitlines()
        except (IOError, UnicodeDecodeError) as e:
            raise RecordParseError(f"{handle}: {e}") from e

        if not lines or not lines[0].strip():
            return None

        try:
            session = json.loads(lines[0])
        except json.JSONDecodeError as e:
            raise RecordParseError(f"{handle}: bad session header: {e}") from e
        if not isinstance(session, dict):
            raise RecordParseError(f"{handle}: session header is not an object")

        messages = []
        for line_num, line in enumerate(lines[1:], start=2):
            if not line.strip():
                continue
            try:
                messages.append(_parse_message_line(line, line_num))
            except RecordParseError as e:
                logger.warning(f"Skipping Goose message in {handle.name}: {e}")

        return session, messages

    def to_exchanges(self, handle: Path, metadata: dict, messages: list[Message]) -> list[Exchange]:
        project = handle.stem
        exchanges = []
        for user, assistant in pair_messages(messages):
            if not user.text and not assistant.text:
                continue
            exchanges.append(Exchange(
                id=f"{handle.stem}-{assistant.line_start}",
                project=project,
                timestamp=user.timestamp,
                user_message=user.text,
                assistant_message=assistant.text,
                archive_path=str(handle),
                line_start=user.line_start,
                line_end=assistant.line_end,
                source=self.name,
            ))
        return exchanges
