"""
Session correlation.

Links an exercise token (handed out by an external study platform) to a
session identifier so that successive searches of one participant can be
grouped. Links are kept in a JSON file:

    ~/.snowball-citation-server/sessions.json
"""

from __future__ import annotations

import asyncio
import json
import logging
import uuid
import zlib
from datetime import datetime, timezone
from typing import Optional

import aiofiles

from ..config import Settings
from ..core.errors import InvalidSessionTokenError

logger = logging.getLogger("snowball-citation-server")

TOKEN_PREFIX = "BT-"
TOKEN_LENGTH = 18  # "BT-" + 12 alphanumerics + "-" + 2 hex digits


def token_checksum(payload: str) -> str:
    """Low byte of the payload's CRC32, as two uppercase hex digits."""
    return f"{zlib.crc32(payload.encode('ascii')) & 0xFF:02X}"


def validate_session_token(token: str) -> None:
    """
    Validate an exercise token of the form BT-XXXXXXXXXXXX-YY.

    Raises:
        InvalidSessionTokenError: On a malformed token or checksum mismatch.
    """
    if not token.startswith(TOKEN_PREFIX):
        raise InvalidSessionTokenError("Token must start with 'BT-'")
    if len(token) != TOKEN_LENGTH:
        raise InvalidSessionTokenError(
            f"Token must be {TOKEN_LENGTH} characters, got {len(token)}"
        )

    parts = token.split("-")
    if len(parts) != 3:
        raise InvalidSessionTokenError("Token must have format BT-XXXXXXXXXXXX-YY")

    payload, checksum = parts[1], parts[2]
    if len(payload) != 12 or not (payload.isascii() and payload.isalnum()):
        raise InvalidSessionTokenError("Payload must be 12 alphanumeric characters")
    if len(checksum) != 2 or any(c not in "0123456789abcdefABCDEF" for c in checksum):
        raise InvalidSessionTokenError("Checksum must be 2 hexadecimal characters")

    expected = token_checksum(payload)
    if checksum.upper() != expected:
        raise InvalidSessionTokenError(
            f"Invalid checksum: expected {expected}, got {checksum}"
        )


class SessionLinker:
    """Maps exercise tokens to stable session identifiers."""

    def __init__(self, settings: Optional[Settings] = None):
        self.settings = settings or Settings()
        self.path = self.settings.sessions_path
        self.path.parent.mkdir(parents=True, exist_ok=True)
        self._lock = asyncio.Lock()

    async def _load(self) -> dict[str, dict]:
        if not self.path.exists():
            return {}
        async with aiofiles.open(self.path, "r", encoding="utf-8") as f:
            content = await f.read()
        return json.loads(content) if content.strip() else {}

    async def _save(self, links: dict[str, dict]) -> None:
        tmp_path = self.path.with_suffix(".tmp")
        async with aiofiles.open(tmp_path, "w", encoding="utf-8") as f:
            await f.write(json.dumps(links, indent=2))
        tmp_path.replace(self.path)

    async def link(self, token: str) -> str:
        """
        Return the session ID for a token, creating one on first use.

        Raises:
            InvalidSessionTokenError: If the token fails validation.
        """
        token = token.strip()
        validate_session_token(token)

        async with self._lock:
            links = await self._load()
            existing = links.get(token)
            if existing is not None:
                logger.info("Existing token mapping found")
                return existing["session_id"]

            session_id = str(uuid.uuid4())
            links[token] = {
                "session_id": session_id,
                "linked_at": datetime.now(timezone.utc).isoformat(),
            }
            await self._save(links)

        logger.info(f"New token mapping created: {token} -> {session_id}")
        return session_id

    async def get_session(self, token: str) -> Optional[str]:
        """Look up an existing link without creating one."""
        async with self._lock:
            links = await self._load()
        entry = links.get(token.strip())
        return entry["session_id"] if entry else None
