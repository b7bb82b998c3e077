from __future__ import annotations

import base64
import hashlib

from cryptography.fernet import Fernet, InvalidToken


# ---------------------------------------------------------------------------
# Slot encryption-at-rest
#
# The assignment set and the pending draw are sealed before they are
# persisted, so peeking at the database does not reveal who drew whom.
#
# NOTE: anyone holding SECRET_KEY (or ASSIGNMENT_ENC_KEY) can still decrypt.
# This only stops casual inspection of the store.
# ---------------------------------------------------------------------------


def build_fernet(secret_key: str, explicit_key: str | None = None) -> Fernet:
    """Fernet keyed by explicit_key, or derived from the Flask SECRET_KEY."""
    explicit = (explicit_key or "").strip()
    if explicit:
        # Expect a urlsafe base64-encoded 32-byte key.
        return Fernet(explicit.encode("utf-8"))

    # Derive a stable key so slots decrypt across restarts.
    digest = hashlib.sha256(b"santadraw-slots|" + (secret_key or "").encode("utf-8")).digest()
    return Fernet(base64.urlsafe_b64encode(digest))


def seal_slot(fernet: Fernet, raw: str) -> str:
    return fernet.encrypt(raw.encode("utf-8")).decode("utf-8")


def unseal_slot(fernet: Fernet, token: str) -> str:
    """Decrypt a sealed slot. Raises ValueError on failure."""
    try:
        return fernet.decrypt(token.encode("utf-8")).decode("utf-8")
    except (InvalidToken, ValueError, TypeError, AttributeError) as e:
        raise ValueError("Invalid slot token") from e
