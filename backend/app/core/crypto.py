"""Fernet encryption for credential configs stored at rest."""

import base64
import hashlib
import json
from typing import Any, Dict, Optional

from cryptography.fernet import Fernet, InvalidToken

from backend.app.core.config import get_settings


def _derive_fernet_key(secret: str) -> bytes:
    """Derive a Fernet key from an arbitrary secret string.

    SHA-256 gives 32 bytes, url-safe base64 makes it a valid Fernet key.
    """
    digest = hashlib.sha256(secret.encode()).digest()
    return base64.urlsafe_b64encode(digest)


def _encryption_secret(secret: Optional[str] = None) -> str:
    if secret:
        return secret
    settings = get_settings()
    return settings.credential_encryption_key or settings.secret_key


def encrypt_config(config: Dict[str, Any], secret: Optional[str] = None) -> str:
    """Encrypt a provider config map into an opaque token."""
    f = Fernet(_derive_fernet_key(_encryption_secret(secret)))
    return f.encrypt(json.dumps(config).encode()).decode()


def decrypt_config(token: str, secret: Optional[str] = None) -> Dict[str, Any]:
    """Decrypt a token produced by encrypt_config.

    Raises:
        cryptography.fernet.InvalidToken: wrong key or tampered payload.
    """
    f = Fernet(_derive_fernet_key(_encryption_secret(secret)))
    return json.loads(f.decrypt(token.encode()).decode())


__all__ = ["encrypt_config", "decrypt_config", "InvalidToken"]
