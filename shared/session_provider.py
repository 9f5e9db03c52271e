#!/usr/bin/env python3
"""
Session Provider Module

Client for the web application's session endpoint. The session keeper
treats it as the sole source of truth for the current credential: it never
mints or signs tokens, it only reads and relays them.

Endpoints (session-cookie authenticated, JSON):
    GET  <session_url>   -> {"idToken": "...", "user": {...}, "expires": "..."}
                            or {} when nobody is signed in
    POST <signout_url>   -> ends the session, body carries callbackUrl

Blocking `requests` calls are run in a worker so the event loop keeps
servicing timers while a fetch is in flight.
"""

import asyncio
import logging
from dataclasses import dataclass, field
from typing import Any, Dict, Optional

import requests

logger = logging.getLogger(__name__)

DEFAULT_TIMEOUT = 15


@dataclass
class Session:
    """An authenticated session as reported by the session endpoint."""
    credential: str
    user: Dict[str, Any] = field(default_factory=dict)
    expires: Optional[str] = None
    claims: Dict[str, Any] = field(default_factory=dict)

    @classmethod
    def from_response(cls, data: Dict[str, Any]) -> Optional["Session"]:
        """Build a Session from the endpoint JSON, or None if unauthenticated."""
        if not data:
            return None
        credential = data.get("idToken") or data.get("credential")
        if not credential:
            return None
        return cls(
            credential=credential,
            user=data.get("user") or {},
            expires=data.get("expires"),
            claims=data,
        )


class HttpSessionProvider:
    """
    Session provider backed by the application's HTTP session endpoints.

    Usage:
        provider = HttpSessionProvider("https://app.example.com/api/auth/session",
                                       "https://app.example.com/api/auth/signout")
        session = await provider.get_current_session()
    """

    def __init__(
        self,
        session_url: str,
        signout_url: str,
        http_session: Optional[requests.Session] = None,
        timeout: float = DEFAULT_TIMEOUT,
    ):
        self.session_url = session_url
        self.signout_url = signout_url
        self.timeout = timeout
        self._http = http_session or requests.Session()

    def _fetch_session(self) -> Optional[Session]:
        response = self._http.get(
            self.session_url,
            headers={"Accept": "application/json"},
            timeout=self.timeout,
        )
        if response.status_code == 401:
            return None
        response.raise_for_status()

        if not response.content:
            return None
        return Session.from_response(response.json())

    def _post_signout(self, callback_url: str):
        response = self._http.post(
            self.signout_url,
            json={"callbackUrl": callback_url},
            headers={"Accept": "application/json"},
            timeout=self.timeout,
        )
        response.raise_for_status()

    async def get_current_session(self) -> Optional[Session]:
        """
        Fetch the current session.

        Returns:
            Session, or None when no one is signed in.

        Raises:
            requests.RequestException: On transport or server errors.
        """
        return await asyncio.to_thread(self._fetch_session)

    async def end_session(self, options: Optional[Dict[str, Any]] = None):
        """
        End the current session.

        Args:
            options: {"callback_url": "/"} - where the app should land afterwards
        """
        callback_url = (options or {}).get("callback_url", "/")
        logger.info(f"Ending session (callback: {callback_url})")
        await asyncio.to_thread(self._post_signout, callback_url)

    def close(self):
        self._http.close()
