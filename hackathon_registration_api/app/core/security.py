"""
Admin session helpers.

Administrators log in with the credentials from ``ADMIN_USER`` and
``ADMIN_PASS`` and receive an ``admin_session`` cookie holding a
signed token.  The token is a compact ``payload.signature`` pair:
the payload is base64url‑encoded JSON with the subject and an ``exp``
timestamp, and the signature is an HMAC‑SHA256 over the payload with
``SECRET_KEY``.  ``require_admin`` is the FastAPI dependency guarding
admin routes.
"""

import base64
import hashlib
import hmac
import json
import time
from typing import Dict, Optional

from fastapi import Cookie, HTTPException, Request, status

from .config import Settings


ADMIN_COOKIE = "admin_session"


def _b64_url_encode(data: bytes) -> str:
    """Base64‑url encode bytes without padding."""
    return base64.urlsafe_b64encode(data).rstrip(b"=").decode("utf-8")


def _b64_url_decode(data: str) -> bytes:
    """Decode base64‑url encoded string, adding padding if necessary."""
    padding = "=" * (-len(data) % 4)
    return base64.urlsafe_b64decode(data + padding)


def _sign(message: bytes, secret: str) -> bytes:
    """Compute HMAC‑SHA256 signature of a message using the given secret."""
    return hmac.new(secret.encode("utf-8"), message, hashlib.sha256).digest()


def create_session_token(subject: str, settings: Settings, expires_in: Optional[int] = None) -> str:
    """Create a signed session token for ``subject``.

    Parameters
    ----------
    subject : str
        Admin user name embedded as ``sub``.
    settings : Settings
        Supplies the signing key and default lifetime.
    expires_in : Optional[int]
        Lifetime in seconds.  Defaults to
        ``settings.admin_session_minutes * 60``.
    """
    lifetime = expires_in or settings.admin_session_minutes * 60
    payload = {"sub": subject, "exp": int(time.time()) + lifetime}
    payload_b64 = _b64_url_encode(json.dumps(payload, separators=(",", ":")).encode("utf-8"))
    signature_b64 = _b64_url_encode(_sign(payload_b64.encode("utf-8"), settings.secret_key))
    return f"{payload_b64}.{signature_b64}"


def decode_session_token(token: str, settings: Settings) -> Optional[Dict[str, str]]:
    """Verify a session token and return its payload, or ``None``."""
    parts = token.split(".")
    if len(parts) != 2:
        return None
    payload_b64, signature_b64 = parts
    try:
        actual_sig = _b64_url_decode(signature_b64)
        data = json.loads(_b64_url_decode(payload_b64).decode("utf-8"))
    except (ValueError, UnicodeDecodeError):
        return None
    expected_sig = _sign(payload_b64.encode("utf-8"), settings.secret_key)
    # Constant‑time comparison to prevent timing attacks
    if not hmac.compare_digest(expected_sig, actual_sig):
        return None
    if not isinstance(data, dict) or int(data.get("exp") or 0) < int(time.time()):
        return None
    return data


def verify_credentials(username: str, password: str, settings: Settings) -> bool:
    """Check login credentials; always false while admin login is unconfigured."""
    if not settings.admin_user or not settings.admin_password:
        return False
    user_ok = hmac.compare_digest(username.strip().encode("utf-8"), settings.admin_user.encode("utf-8"))
    pass_ok = hmac.compare_digest(password.strip().encode("utf-8"), settings.admin_password.encode("utf-8"))
    return user_ok and pass_ok


def require_admin(request: Request, admin_session: Optional[str] = Cookie(None)) -> Dict[str, str]:
    """Dependency that rejects requests without a valid admin session cookie."""
    settings: Settings = request.app.state.registration.settings
    payload = decode_session_token(admin_session, settings) if admin_session else None
    if not payload:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Admin login required")
    return payload
