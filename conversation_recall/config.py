"""Storage locations and remote credentials."""

import json
import logging
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Mapping, Optional

logger = logging.getLogger(__name__)

DEFAULT_ARCHIVE_DB_PATH = Path.home() / ".cache" / "conversation-recall" / "conversations.db"
CLAUDE_PROJECTS_DIR = Path.home() / ".claude" / "projects"
OPENCODE_STORAGE_DIR = Path.home() / ".local" / "share" / "opencode" / "storage"
GOOSE_SESSIONS_DIR = Path.home() / ".local" / "share" / "goose" / "sessions"
OPENCODE_CONFIG_PATH = Path.home() / ".config" / "opencode" / "opencode.json"

MEMOS_DEFAULT_CHANNEL = "MODELSCOPE"
MEMOS_DEFAULT_BASE_URL = "https://api.memos.ai"
MEMOS_MCP_SERVER = "memos-api-mcp"


@dataclass(frozen=True)
class MemosConfig:
    api_key: str = ""
    channel: str = MEMOS_DEFAULT_CHANNEL
    user_id: str = ""
    base_url: str = MEMOS_DEFAULT_BASE_URL

    @property
    def configured(self) -> bool:
        return bool(self.api_key)


def _read_mcp_environment(config_path: Path) -> Optional[dict]:
    """Return the memos MCP server's environment block from an OpenCode config."""
    if not config_path.exists():
        return None
    try:
        with open(config_path) as f:
            config = json.load(f)
    except (json.JSONDecodeError, IOError) as e:
        logger.warning(f"Could not read memos config from {config_path}: {e}")
        return None

    if not isinstance(config, dict):
        return None
    mcp = config.get("mcp")
    server = mcp.get(MEMOS_MCP_SERVER) if isinstance(mcp, dict) else None
    env = server.get("environment") if isinstance(server, dict) else None
    return env if isinstance(env, dict) else None


def load_memos_config(
    environ: Optional[Mapping[str, str]] = None,
    config_path: Optional[Path] = None,
) -> MemosConfig:
    """Resolve memos credentials.

    Environment variables win. When MEMOS_API_KEY is unset, the
    ``mcp.memos-api-mcp.environment`` block of the OpenCode config file
    supplies the key, channel and user id instead.
    """
    environ = os.environ if environ is None else environ
    config_path = config_path or OPENCODE_CONFIG_PATH

    base_url = environ.get("MEMOS_BASE_URL") or MEMOS_DEFAULT_BASE_URL
    api_key = environ.get("MEMOS_API_KEY", "")
    if api_key:
        return MemosConfig(
            api_key=api_key,
            channel=environ.get("MEMOS_CHANNEL") or MEMOS_DEFAULT_CHANNEL,
            user_id=environ.get("MEMOS_USER_ID", ""),
            base_url=base_url,
        )

    env = _read_mcp_environment(config_path)
    if env is None:
        return MemosConfig(
            channel=environ.get("MEMOS_CHANNEL") or MEMOS_DEFAULT_CHANNEL,
            user_id=environ.get("MEMOS_USER_ID", ""),
            base_url=base_url,
        )

    return MemosConfig(
        api_key=env.get("MEMOS_API_KEY") or "",
        channel=env.get("MEMOS_CHANNEL") or MEMOS_DEFAULT_CHANNEL,
        user_id=env.get("MEMOS_USER_ID") or "",
        base_url=base_url,
    )


@dataclass
class RecallConfig:
    """Where each source keeps its data. Passed explicitly to every source."""

    archive_db_path: Path = DEFAULT_ARCHIVE_DB_PATH
    claude_projects_dir: Path = CLAUDE_PROJECTS_DIR
    opencode_storage_dir: Path = OPENCODE_STORAGE_DIR
    goose_sessions_dir: Path = GOOSE_SESSIONS_DIR
    opencode_config_path: Path = OPENCODE_CONFIG_PATH
    environ: Optional[Mapping[str, str]] = None
    _memos: Optional[MemosConfig] = field(default=None, init=False, repr=False)

    @property
    def memos(self) -> MemosConfig:
        # Resolved on first use, then kept for the life of this config
        if self._memos is None:
            self._memos = load_memos_config(self.environ, self.opencode_config_path)
        return self._memos

    @property
    def openai_api_key(self) -> Optional[str]:
        environ = os.environ if self.environ is None else self.environ
        return environ.get("OPENAI_API_KEY") or None
