#!/usr/bin/env python3
"""
Token Validator Module

Structural sanity check for session credentials. A credential is three
dot-separated base64url segments (header.payload.signature); the payload
must decode to a JSON object carrying the subject, issued-at and expiry
claims.

No signature verification happens here. The session provider is trusted;
this only catches truncated or garbled credentials before they are relayed.
"""

import base64
import binascii
import json
import logging
from typing import Any, Dict, Optional

logger = logging.getLogger(__name__)

# JWT claim names for subject, issued-at and expiry
REQUIRED_CLAIMS = ("sub", "iat", "exp")


def _b64url_decode(segment: str) -> bytes:
    """Decode a base64url segment, restoring stripped padding."""
    padding = "=" * (-len(segment) % 4)
    return base64.urlsafe_b64decode(segment + padding)


def _parse_payload(token: str) -> Dict[str, Any]:
    """
    Decode the middle segment of a credential.

    Raises:
        ValueError: If the segment is not base64url JSON describing an object.
    """
    parts = token.split(".")
    if len(parts) != 3:
        raise ValueError(f"Expected 3 segments, got {len(parts)}")

    try:
        payload = json.loads(_b64url_decode(parts[1]))
    except (binascii.Error, UnicodeDecodeError, json.JSONDecodeError, RecursionError) as e:
        raise ValueError(f"Payload segment is not base64url JSON: {e}") from e

    if not isinstance(payload, dict):
        raise ValueError("Payload is not a JSON object")
    return payload


def validate_token_structure(token: Any) -> bool:
    """
    Check that a credential is structurally usable.

    Args:
        token: Candidate credential (may be None or a non-string)

    Returns:
        bool: True if the credential has three non-empty segments and a
              payload with sub, iat and exp; False otherwise.
    """
    if not token or not isinstance(token, str):
        return False

    parts = token.split(".")
    if len(parts) != 3 or not all(parts):
        return False

    try:
        payload = _parse_payload(token)
    except ValueError:
        return False

    return all(payload.get(claim) is not None for claim in REQUIRED_CLAIMS)


def decode_token(token: str) -> Dict[str, Any]:
    """
    Decode a credential payload without validating it.

    Returns an empty dict if the credential cannot be decoded, so callers
    reading `exp` see a missing claim rather than an exception.
    """
    try:
        return _parse_payload(token)
    except (ValueError, AttributeError) as e:
        logger.error(f"Failed to decode token: {e}")
        return {}


def seconds_until_expiry(token: str, now: float) -> Optional[float]:
    """
    Seconds between `now` (epoch seconds) and the credential's exp claim.

    Returns:
        float: Remaining lifetime (negative if already expired), or None if
               the credential carries no usable expiry.
    """
    expiry = decode_token(token).get("exp")
    if expiry is None:
        return None
    try:
        return float(expiry) - now
    except (TypeError, ValueError):
        return None
