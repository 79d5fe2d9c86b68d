# =============================================================================
# Auth Service — Bearer Key Issue & Hashing
# =============================================================================
#
# Keys identify a profile: each ApiKey record carries the uid it was issued
# for. The auth dependency hashes the presented key, looks the hash up in
# the store, and the uid on the record becomes the request identity.
#
# DESIGN DECISION: SHA-256 hashing (not bcrypt). Keys are 32 random bytes,
# so a fast deterministic hash is safe and allows direct lookup by hash.
# Bcrypt's deliberate slowness only matters for low-entropy passwords.
# =============================================================================

from __future__ import annotations

import hashlib
import logging
import secrets
from datetime import datetime

from jurifly.models.domain import ApiKey
from jurifly.services.store import DocumentStore

logger = logging.getLogger(__name__)

KEY_PREFIX = "sk-"


def generate_api_key() -> tuple[str, str, str]:
    """
    Generate a new key.

    Returns:
        (raw_key, key_prefix, key_hash): the raw key is shown to the caller
        once; the 8-char prefix identifies it in logs; only the hash is
        stored.
    """
    raw_key = f"{KEY_PREFIX}{secrets.token_hex(32)}"
    return raw_key, raw_key[:8], hash_api_key(raw_key)


def hash_api_key(raw_key: str) -> str:
    """SHA-256 hex digest (64 chars)."""
    return hashlib.sha256(raw_key.encode()).hexdigest()


async def issue_api_key(
    store: DocumentStore,
    uid: str,
    name: str,
    scopes: list[str] | None = None,
    rate_limit_rpm: int | None = None,
    expires_at: datetime | None = None,
) -> tuple[str, ApiKey]:
    """Create and persist a key for `uid`. Returns (raw_key, record)."""
    raw_key, key_prefix, key_hash = generate_api_key()
    record = await store.add_api_key(ApiKey(
        uid=uid,
        name=name,
        key_prefix=key_prefix,
        key_hash=key_hash,
        scopes=scopes,
        rate_limit_rpm=rate_limit_rpm,
        expires_at=expires_at,
    ))
    logger.info("Issued API key %s... for uid=%s", key_prefix, uid)
    return raw_key, record
