"""OpenCode session source."""

import json
import logging
from pathlib import Path
from typing import Optional

from ..errors import RecordParseError
from ..models import OPENCODE, Exchange
from . import register_source
from .base import Message, SessionStoreSource, epoch_to_date, extract_text_content, pair_messages

logger = logging.getLogger(__name__)


def _read_json(path: Path) -> dict:
    try:
        with open(path) as f:
            data = json.load(f)
    except (json.JSONDecodeError, IOError, UnicodeDecodeError) as e:
        raise RecordParseError(f"{path}: {e}") from e
    if not isinstance(data, dict):
        raise RecordParseError(f"{path}: expected a JSON object")
    return data


@register_source
class OpenCodeSource(SessionStoreSource):
    """Source for OpenCode sessions.

    OpenCode keeps sessions in an XDG storage tree:
    ``session/**/ses_*.json`` holds session metadata,
    ``message/<session id>/msg_*.json`` one file per message and
    ``part/<message id>/*.json`` the text parts of newer messages.
    """

    name = OPENCODE
    display_name = "OpenCode"
    icon = "💻"
    color = "magenta"

    @property
    def storage_dir(self) -> Path:
        return self.config.opencode_storage_dir

    @property
    def session_dir(self) -> Path:
        return self.storage_dir / "session"

    @property
    def message_dir(self) -> Path:
        return self.storage_dir / "message"

    @property
    def part_dir(self) -> Path:
        return self.storage_dir / "part"

    def get_sessions_dir(self) -> Path:
        return self.session_dir

    def list_raw_sessions(self) -> list[Path]:
        """Discover session metadata files, flat or nested per project."""
        if not self.session_dir.exists():
            return []
        return sorted(p for p in self.session_dir.rglob("ses_*.json") if p.is_file())

    def load_session(self, handle: Path) -> Optional[tuple[dict, list[Message]]]:
        session = _read_json(handle)
        session_id = session.get("id") or handle.stem
        if not isinstance(session_id, str):
            raise RecordParseError(f"{handle}: session id is not a string")
        return session, self._load_messages(session_id)

    def _load_messages(self, session_id: str) -> list[Message]:
        session_messages = self.message_dir / session_id
        if not session_messages.exists():
            return []

        timed: list[tuple[float, Message]] = []
        for msg_file in sorted(session_messages.glob("msg_*.json")):
            try:
                timed.append(self._parse_message(msg_file))
            except RecordParseError as e:
                logger.warning(f"Skipping OpenCode message: {e}")

        timed.sort(key=lambda item: item[0])
        return [message for _, message in timed]

    def _parse_message(self, path: Path) -> tuple[float, Message]:
        msg = _read_json(path)
        time_info = msg.get("time")
        created = time_info.get("created") if isinstance(time_info, dict) else None
        if not isinstance(created, (int, float)):
            raise RecordParseError(f"{path}: missing time.created")

        msg_id = msg.get("id") or path.stem
        if not isinstance(msg_id, str):
            raise RecordParseError(f"{path}: message id is not a string")
        if isinstance(msg.get("content"), list):
            text = extract_text_content(msg["content"])
        else:
            text = self._get_part_text(msg_id)

        message = Message(
            role=msg.get("role", ""),
            text=text,
            timestamp=epoch_to_date(created / 1000),
            id=msg_id,
        )
        return created, message

    def _get_part_text(self, message_id: str) -> str:
        """Get message text from part files."""
        part_msg_dir = self.part_dir / message_id
        if not part_msg_dir.exists():
            return ""

        texts = []
        for part_file in sorted(part_msg_dir.glob("*.json")):
            try:
                part = _read_json(part_file)
            except RecordParseError as e:
                logger.warning(f"Skipping OpenCode part: {e}")
                continue
            if part.get("type") == "text" and isinstance(part.get("text"), str) and part["text"]:
                texts.append(part["text"])

        return "\n".join(texts)

    def to_exchanges(self, handle: Path, metadata: dict, messages: list[Message]) -> list[Exchange]:
        project = metadata.get("projectID") or "unknown"
        exchanges = []
        for user, assistant in pair_messages(messages):
            if not user.text and not assistant.text:
                continue
            exchanges.append(Exchange(
                id=assistant.id,
                project=project,
                timestamp=user.timestamp,
                user_message=user.text,
                assistant_message=assistant.text,
                archive_path=str(handle),
                source=self.name,
            ))
        return exchanges
