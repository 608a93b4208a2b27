"""HMAC-SHA256 verification for Pagar.me webhook deliveries."""

import hashlib
import hmac
import re
from typing import Optional

_PREFIX = re.compile(r"^sha256=", re.IGNORECASE)


def compute_signature(payload: bytes, secret: str) -> str:
    """Return the lowercase hex HMAC-SHA256 of ``payload`` keyed by ``secret``."""
    return hmac.new(secret.encode("utf-8"), payload, hashlib.sha256).hexdigest()


def verify_signature(
    payload: Optional[bytes],
    signature_header: Optional[str],
    secret: Optional[str],
) -> bool:
    """Check a webhook signature header against the raw request body.

    Fails closed: any missing input yields False and nothing raises.
    The header may carry a ``sha256=`` prefix (any case).

    Both hex strings are digested to a fixed length before
    ``hmac.compare_digest`` so the comparison time does not depend on
    the length or content of the supplied signature.
    """
    if not payload or not signature_header or not secret:
        return False

    supplied = _PREFIX.sub("", signature_header.strip()).strip()
    if not supplied:
        return False

    expected = compute_signature(payload, secret)
    return hmac.compare_digest(
        hashlib.sha256(expected.encode("utf-8")).digest(),
        hashlib.sha256(supplied.encode("utf-8", "replace")).digest(),
    )
