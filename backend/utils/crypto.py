import base64
import hashlib
from functools import lru_cache

from cryptography.fernet import Fernet, InvalidToken, MultiFernet

from config.env import KYC_DATA_ENCRYPTION_KEY, JWT_SECRET


class DocumentCipherError(Exception):
    pass


def _fernet_for(secret: str) -> Fernet:
    key = base64.urlsafe_b64encode(hashlib.sha256(secret.encode("utf-8")).digest())
    return Fernet(key)


@lru_cache(maxsize=1)
def _cipher() -> MultiFernet:
    """
    KYC_DATA_ENCRYPTION_KEY may hold several comma separated secrets.
    The first one encrypts; all of them can decrypt, so keys can be rotated
    without re-encrypting stored documents first.
    """
    secrets = [s.strip() for s in (KYC_DATA_ENCRYPTION_KEY or JWT_SECRET or "").split(",") if s.strip()]
    if not secrets:
        raise RuntimeError("KYC_DATA_ENCRYPTION_KEY is not configured")
    return MultiFernet([_fernet_for(s) for s in secrets])


def encrypt_sensitive_value(value: str) -> str:
    """Encrypt identity document and agreement photo URLs before they are stored."""
    if not value:
        raise DocumentCipherError("Nothing to encrypt")
    return _cipher().encrypt(value.encode("utf-8")).decode("utf-8")


def decrypt_sensitive_value(token: str) -> str:
    try:
        return _cipher().decrypt(token.encode("utf-8")).decode("utf-8")
    except InvalidToken:
        raise DocumentCipherError("Stored document reference cannot be decrypted")
