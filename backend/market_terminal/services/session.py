"""
Yahoo Finance session authentication (cookie + crumb).

Protected Yahoo endpoints need a session cookie plus a short-lived "crumb"
token bound to it. Obtaining them is a two-step handshake:

1. GET the seed URL (fc.yahoo.com) and harvest its Set-Cookie headers.
2. GET the crumb URL with that cookie; the plain-text body is the crumb.

The session is shared by every request in the process. Concurrent callers
needing a fresh session coalesce onto one in-flight handshake task.
"""
import asyncio
import time
from dataclasses import dataclass
from enum import Enum
from typing import Awaitable, Callable, List, Optional

import httpx

from ..config import Settings, settings as default_settings
from ..logging_config import get_logger

logger = get_logger(__name__)


class AuthState(str, Enum):
    UNAUTHENTICATED = "unauthenticated"
    AUTHENTICATING = "authenticating"
    AUTHENTICATED = "authenticated"
    EXPIRED = "expired"


@dataclass(frozen=True)
class Session:
    """Cookie header, crumb and the epoch time they stop being trusted."""
    cookie_header: str
    crumb: str
    expires_at: float


class HandshakeError(Exception):
    """One handshake attempt failed. Never escapes the authenticator."""

    def __init__(self, message: str, rate_limited: bool = False):
        super().__init__(message)
        self.rate_limited = rate_limited


def join_set_cookies(set_cookie_headers: List[str]) -> str:
    """Reduce Set-Cookie headers to a single Cookie header value."""
    parts = [header.split(";", 1)[0].strip() for header in set_cookie_headers]
    return "; ".join(part for part in parts if part)


class SessionAuthenticator:
    """
    Obtains and renews the upstream session.

    ensure_session() never raises; callers check the boolean and skip the
    dependent request when it is False.
    """

    def __init__(
        self,
        client: httpx.AsyncClient,
        config: Optional[Settings] = None,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
        clock: Callable[[], float] = time.time,
    ):
        self._client = client
        self._settings = config or default_settings
        self._sleep = sleep
        self._clock = clock
        self._session: Optional[Session] = None
        self._inflight: Optional[asyncio.Task] = None
        self._was_authenticated = False
        self.handshake_count = 0

    # ============ State ============

    @property
    def session(self) -> Optional[Session]:
        """The current session if it has not expired."""
        if self._session is not None and self._clock() < self._session.expires_at:
            return self._session
        return None

    @property
    def state(self) -> AuthState:
        if self._inflight is not None and not self._inflight.done():
            return AuthState.AUTHENTICATING
        if self.session is not None:
            return AuthState.AUTHENTICATED
        if self._was_authenticated:
            return AuthState.EXPIRED
        return AuthState.UNAUTHENTICATED

    def invalidate(self, crumb: Optional[str] = None) -> None:
        """
        Drop the session so the next caller re-handshakes.

        Args:
            crumb: The crumb a rejected request was sent with. If given, the
                session is only dropped while it still carries that crumb.
        """
        if self._session is None:
            return
        if crumb is not None and self._session.crumb != crumb:
            logger.debug("Ignoring invalidation for a crumb that was already renewed")
            return
        logger.info("Yahoo session invalidated; next call will re-authenticate")
        self._session = None

    # ============ Handshake ============

    async def ensure_session(self) -> bool:
        """
        Make sure a valid session exists.

        Returns:
            True if a session is available, False if the handshake failed.
        """
        if self.session is not None:
            return True

        if self._inflight is None or self._inflight.done():
            self._inflight = asyncio.create_task(self._authenticate())

        # shield so one cancelled waiter does not abort the handshake for the others
        try:
            return await asyncio.shield(self._inflight)
        except Exception as e:
            logger.error(f"Unexpected error during Yahoo authentication: {e!r}")
            return False

    async def _authenticate(self) -> bool:
        self.handshake_count += 1
        max_attempts = self._settings.auth_max_attempts

        for attempt in range(1, max_attempts + 1):
            try:
                session = await self._handshake()
            except HandshakeError as e:
                if attempt >= max_attempts:
                    logger.error(f"Yahoo authentication failed after {attempt} attempts: {e}")
                    break
                delay = (
                    self._settings.auth_rate_limit_delay if e.rate_limited
                    else self._settings.auth_retry_delay
                )
                log = logger.warning if e.rate_limited else logger.debug
                log(
                    f"Authentication attempt {attempt}/{max_attempts} failed: {e}. "
                    f"Waiting {delay:.1f}s..."
                )
                await self._sleep(delay)
                continue

            self._session = session
            self._was_authenticated = True
            logger.info("Obtained Yahoo session crumb")
            return True

        self._session = None
        return False

    async def _handshake(self) -> Session:
        headers = {"User-Agent": self._settings.user_agent}

        try:
            seed = await self._client.get(
                self._settings.yahoo_seed_url,
                headers=headers,
                follow_redirects=False,
            )
        except httpx.HTTPError as e:
            raise HandshakeError(f"seed request failed: {e!r}")
        if seed.status_code == 429:
            raise HandshakeError("seed request rate limited", rate_limited=True)

        # fc.yahoo.com answers 404 but still sets the cookie, so status is not checked here
        cookie = join_set_cookies(seed.headers.get_list("set-cookie"))
        if not cookie:
            logger.debug("Seed request returned no cookies")

        crumb_headers = dict(headers)
        if cookie:
            crumb_headers["Cookie"] = cookie
        try:
            response = await self._client.get(self._settings.yahoo_crumb_url, headers=crumb_headers)
        except httpx.HTTPError as e:
            raise HandshakeError(f"crumb request failed: {e!r}")
        if response.status_code == 429:
            raise HandshakeError("crumb request rate limited", rate_limited=True)
        if response.status_code >= 400:
            raise HandshakeError(f"crumb request returned HTTP {response.status_code}")

        crumb = response.text.strip()
        if not crumb or "<" in crumb or " " in crumb:
            raise HandshakeError(f"crumb response was not a token: {crumb[:40]!r}")

        return Session(
            cookie_header=cookie,
            crumb=crumb,
            expires_at=self._clock() + self._settings.session_ttl_seconds,
        )
