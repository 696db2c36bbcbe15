"""
email_config.py
---------------
Process-wide configuration, read once from the environment at startup.

Required:
    POSTMARK_SERVER_TOKEN    Postmark server API token
    DEFAULT_SENDER_EMAIL     From address used when a call does not override it
    DEFAULT_MESSAGE_STREAM   Message stream every send goes to

Optional:
    POSTMARK_API_URL, POSTMARK_TIMEOUT_SECONDS, LOG_LEVEL
"""

import logging
import os
import sys
from dataclasses import dataclass, field
from typing import Mapping, Optional

from email_errors import ConfigurationError

POSTMARK_API_URL = "https://api.postmarkapp.com"

_REQUIRED = {
    "server_token": "POSTMARK_SERVER_TOKEN",
    "default_sender": "DEFAULT_SENDER_EMAIL",
    "default_message_stream": "DEFAULT_MESSAGE_STREAM",
}


@dataclass(frozen=True)
class ProviderCredentials:
    server_token: str = field(repr=False)
    default_sender: str
    default_message_stream: str
    api_url: str = POSTMARK_API_URL
    timeout_seconds: float = 30.0


def load_credentials(environ: Optional[Mapping[str, str]] = None) -> ProviderCredentials:
    """Build credentials from the environment. Raises ConfigurationError listing every missing name."""
    env = os.environ if environ is None else environ

    values = {key: (env.get(name) or "").strip() for key, name in _REQUIRED.items()}
    missing = [_REQUIRED[key] for key, value in values.items() if not value]
    if missing:
        raise ConfigurationError(f"{', '.join(missing)} is not set")

    raw_timeout = env.get("POSTMARK_TIMEOUT_SECONDS") or "30"
    try:
        timeout = float(raw_timeout)
    except ValueError:
        raise ConfigurationError(f"POSTMARK_TIMEOUT_SECONDS must be a number, got {raw_timeout!r}")

    return ProviderCredentials(
        api_url=(env.get("POSTMARK_API_URL") or POSTMARK_API_URL).rstrip("/"),
        timeout_seconds=timeout,
        **values,
    )


def configure_logging() -> None:
    # stdout carries the stdio MCP transport, so logs go to stderr only
    logging.basicConfig(
        level=os.getenv("LOG_LEVEL", "INFO").upper(),
        format="%(asctime)s | %(levelname)-8s | %(name)s | %(message)s",
        stream=sys.stderr,
    )
