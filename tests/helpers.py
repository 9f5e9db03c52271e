"""
Builders and fakes shared by the session keeper tests.
"""

import base64
import json

from shared.session_provider import Session

START_TIME = 1_700_000_000.0


def b64url(data) -> str:
    raw = json.dumps(data).encode("utf-8")
    return base64.urlsafe_b64encode(raw).rstrip(b"=").decode("ascii")


def make_token(expires_in: float = 3600, now: float = START_TIME, **overrides) -> str:
    """Build an unsigned credential expiring `expires_in` seconds after `now`.

    Pass a claim as None to leave it out of the payload.
    """
    payload = {"sub": "user-123", "iat": int(now), "exp": int(now + expires_in)}
    payload.update(overrides)
    payload = {k: v for k, v in payload.items() if v is not None}
    return f"{b64url({'alg': 'RS256', 'typ': 'JWT'})}.{b64url(payload)}.c2lnbmF0dXJl"


def make_session(expires_in: float = 3600, now: float = START_TIME, **overrides) -> Session:
    return Session(credential=make_token(expires_in, now, **overrides), user={"id": "user-123"})


class MemoryStorage:
    """Dict-backed stand-in for durable key-value storage."""

    def __init__(self):
        self.data = {}
        self.set_calls = []

    def get(self, key):
        return self.data.get(key)

    def set(self, key, value):
        self.set_calls.append(key)
        self.data[key] = value

    def remove(self, key):
        self.data.pop(key, None)

    def keys(self):
        return list(self.data)


class FakeCanvas:
    """Editor canvas exposing to_json() like the real editing surface."""

    def __init__(self, objects=None):
        self.objects = list(objects or [])

    def to_json(self):
        return {"version": "5.3.0", "objects": list(self.objects)}
