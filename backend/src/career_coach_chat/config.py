"""
Configuration for the career coach chat.

Defaults live as module constants; 'load_settings' overlays environment
variables on top of them. The completion API key is treated as a secret and
read from '/secrets/<name>' first (mounted secret file), then from the
environment.

Environment variables:
    COMPLETION_URL        chat completions endpoint (required)
    COMPLETION_API_KEY    bearer token, optional for local gateways
    COMPLETION_MODEL      model name sent with each request, optional
    CHAT_DB_PATH          SQLite file for conversations
    CHAT_IDLE_TIMEOUT     seconds without stream data before giving up
    CHAT_CONNECT_TIMEOUT  seconds to establish the connection
    SYSTEM_PROMPT         overrides the career coach prompt
"""

import os
from pathlib import Path

from pydantic import BaseModel

_ROOT = Path(__file__).parents[3]  # <project-root>/
DB_PATH = _ROOT / "backend" / "conversations.db"

API_KEY_SECRET = "COMPLETION_API_KEY"
IDLE_TIMEOUT = 60.0
CONNECT_TIMEOUT = 10.0

SYSTEM_PROMPT = (
    "You are an AI career coach helping students and early-career professionals.\n\n"
    "You help with resumes, skill development, interview preparation and career paths.\n\n"
    "Rules:\n"
    "- Give concrete, actionable advice. Prefer short lists over long paragraphs.\n"
    "- Ask a clarifying question when the goal or target role is unclear.\n"
    "- Be honest about gaps, but stay encouraging.\n"
    "- Use Markdown for structure and fenced code blocks for code."
)


class ChatSettings(BaseModel):
    completion_url: str
    api_key: str | None = None
    model_name: str | None = None
    db_path: Path = DB_PATH
    idle_timeout: float = IDLE_TIMEOUT
    connect_timeout: float = CONNECT_TIMEOUT
    system_prompt: str = SYSTEM_PROMPT


def get_secret(name: str, required: bool = True) -> str | None:
    """Load a secret from a mounted secret file or an environment variable.

    Checks in order:
    1. /secrets/<name>
    2. <name> environment variable

    Raises ValueError if 'required' and neither is available.
    """
    secret_file = Path(f"/secrets/{name}")
    if secret_file.exists():
        return secret_file.read_text().strip()
    key = os.environ.get(name, "")
    if key:
        return key
    if required:
        raise ValueError(
            f"{name} not found. Either:\n"
            f"  - Mount it as a secret file at /secrets/{name}, or\n"
            f"  - Set the {name} environment variable."
        )
    return None


def load_settings() -> ChatSettings:
    url = os.environ.get("COMPLETION_URL", "").strip()
    if not url:
        raise ValueError("COMPLETION_URL must be set to the chat completions endpoint.")

    values: dict[str, object] = {
        "completion_url": url,
        "api_key": get_secret(API_KEY_SECRET, required=False),
        "model_name": os.environ.get("COMPLETION_MODEL") or None,
    }
    if os.environ.get("CHAT_DB_PATH"):
        values["db_path"] = os.environ["CHAT_DB_PATH"]
    if os.environ.get("CHAT_IDLE_TIMEOUT"):
        values["idle_timeout"] = os.environ["CHAT_IDLE_TIMEOUT"]
    if os.environ.get("CHAT_CONNECT_TIMEOUT"):
        values["connect_timeout"] = os.environ["CHAT_CONNECT_TIMEOUT"]
    if os.environ.get("SYSTEM_PROMPT"):
        values["system_prompt"] = os.environ["SYSTEM_PROMPT"]
    return ChatSettings.model_validate(values)
