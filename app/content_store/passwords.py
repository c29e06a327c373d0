"""Salted password hashing for protected records."""

import base64
import hashlib
import hmac
import secrets

_SCHEME = "scrypt"
_N = 2**14
_R = 8
_P = 1
_SALT_BYTES = 16
_KEY_BYTES = 32


def _b64(raw: bytes) -> str:
    return base64.urlsafe_b64encode(raw).decode("ascii").rstrip("=")


def _unb64(text: str) -> bytes:
    return base64.urlsafe_b64decode(text + "=" * (-len(text) % 4))


def _derive(password: str, salt: bytes) -> bytes:
    return hashlib.scrypt(
        password.encode("utf-8"), salt=salt, n=_N, r=_R, p=_P, dklen=_KEY_BYTES
    )


def hash_password(password: str) -> str:
    """Return an encoded ``scrypt$salt$digest`` string for ``password``."""
    salt = secrets.token_bytes(_SALT_BYTES)
    return f"{_SCHEME}${_b64(salt)}${_b64(_derive(password, salt))}"


def verify_password(password: str, encoded: str) -> bool:
    """Check ``password`` against a value produced by :func:`hash_password`."""
    try:
        scheme, salt, digest = encoded.split("$")
    except ValueError:
        return False
    if scheme != _SCHEME:
        return False
    return hmac.compare_digest(_derive(password, _unb64(salt)), _unb64(digest))
