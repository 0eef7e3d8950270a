"""
Resilient request wrapper for Yahoo Finance API calls.

Every data-access function goes through ResilientFetcher.get_json(), which
attaches the session where needed, interprets status codes and retries
within a fixed budget. It never raises for upstream trouble: an exhausted
budget returns None, which callers treat as "no data".

Status handling:
- 401 on an authenticated call: drop the session, re-authenticate, retry once
  (not counted against the budget)
- 429: wait rate_limit_delay, retry (counted)
- 5xx, transport errors, undecodable bodies: wait retry_delay, retry (counted)
- other 4xx: definitive, no retry
- 2xx with an empty result for a non-empty request: retry once
"""
import asyncio
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Dict, Optional

import httpx

from ..config import Settings, settings as default_settings
from ..logging_config import get_logger
from .session import SessionAuthenticator

logger = get_logger(__name__)

# Common rate limit error indicators in exception messages
RATE_LIMIT_INDICATORS = (
    "rate limit",
    "too many requests",
    "429",
    "throttl",
    "exceeded",
    "try again",
)


def is_rate_limit_error(exception: Exception) -> bool:
    """
    Check if an exception appears to be a rate limit error.

    Args:
        exception: The exception to check.

    Returns:
        True if the exception message suggests rate limiting.
    """
    error_msg = str(exception).lower()
    return any(indicator in error_msg for indicator in RATE_LIMIT_INDICATORS)


@dataclass(frozen=True)
class RetryPolicy:
    """Retry budget for one call site."""
    max_attempts: int = 3
    retry_delay: float = 1.0
    rate_limit_delay: float = 5.0
    retry_on_empty: bool = True

    @classmethod
    def from_settings(cls, config: Settings) -> "RetryPolicy":
        return cls(
            max_attempts=config.yahoo_max_attempts,
            retry_delay=config.yahoo_retry_delay,
            rate_limit_delay=config.yahoo_rate_limit_delay,
        )


class ResilientFetcher:
    """Wraps single upstream GET requests with session handling and bounded retry."""

    def __init__(
        self,
        client: httpx.AsyncClient,
        authenticator: SessionAuthenticator,
        config: Optional[Settings] = None,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ):
        self._client = client
        self._auth = authenticator
        self._settings = config or default_settings
        self._sleep = sleep
        self.default_policy = RetryPolicy.from_settings(self._settings)

    async def get_json(
        self,
        url: str,
        params: Optional[Dict[str, Any]] = None,
        *,
        authenticated: bool = False,
        policy: Optional[RetryPolicy] = None,
        is_empty: Optional[Callable[[Any], bool]] = None,
        description: Optional[str] = None,
    ) -> Optional[Any]:
        """
        Execute a GET request and decode its JSON body.

        Args:
            url: Endpoint URL.
            params: Query parameters (the crumb is added for authenticated calls).
            authenticated: Attach the session cookie and crumb.
            policy: Retry budget; defaults to the settings-derived policy.
            is_empty: Predicate marking a successful payload as suspiciously empty.
            description: Description for logging purposes.

        Returns:
            The decoded payload, or None if the request could not be completed.
        """
        description = description or url
        try:
            return await asyncio.wait_for(
                self._get_json(url, params, authenticated, policy or self.default_policy, is_empty, description),
                timeout=self._settings.operation_timeout,
            )
        except asyncio.TimeoutError:
            logger.error(f"Gave up on {description}: exceeded {self._settings.operation_timeout:.0f}s deadline")
            return None

    async def _get_json(
        self,
        url: str,
        params: Optional[Dict[str, Any]],
        authenticated: bool,
        policy: RetryPolicy,
        is_empty: Optional[Callable[[Any], bool]],
        description: str,
    ) -> Optional[Any]:
        failures = 0
        reauthenticated = False
        empty_retried = False

        while True:
            request_params = dict(params or {})
            headers = {"User-Agent": self._settings.user_agent}
            crumb = None

            if authenticated:
                if not await self._auth.ensure_session():
                    logger.warning(f"No Yahoo session available, skipping {description}")
                    return None
                session = self._auth.session
                if session is None:
                    return None
                crumb = session.crumb
                request_params["crumb"] = crumb
                if session.cookie_header:
                    headers["Cookie"] = session.cookie_header

            try:
                response = await self._client.get(url, params=request_params, headers=headers)
            except httpx.HTTPError as e:
                failures += 1
                if failures >= policy.max_attempts:
                    logger.error(f"All {policy.max_attempts} attempts exhausted for {description}: {e!r}")
                    return None
                log = logger.warning if is_rate_limit_error(e) else logger.debug
                log(
                    f"Retry {failures}/{policy.max_attempts - 1} for {description}: "
                    f"Error - {e!r}. Waiting {policy.retry_delay:.1f}s..."
                )
                await self._sleep(policy.retry_delay)
                continue

            status = response.status_code

            if status == 401 and authenticated and not reauthenticated:
                reauthenticated = True
                logger.info(f"Crumb rejected for {description}, re-authenticating")
                self._auth.invalidate(crumb)
                continue

            if status == 429:
                failures += 1
                if failures >= policy.max_attempts:
                    logger.warning(f"Rate limited on {description}; giving up after {failures} attempts")
                    return None
                logger.warning(
                    f"Retry {failures}/{policy.max_attempts - 1} for {description}: "
                    f"Rate limited. Waiting {policy.rate_limit_delay:.1f}s..."
                )
                await self._sleep(policy.rate_limit_delay)
                continue

            if 400 <= status < 500:
                logger.warning(f"HTTP {status} for {description}")
                return None

            if not 200 <= status < 300:
                failures += 1
                if failures >= policy.max_attempts:
                    logger.error(f"All {policy.max_attempts} attempts exhausted for {description}: HTTP {status}")
                    return None
                logger.debug(
                    f"Retry {failures}/{policy.max_attempts - 1} for {description}: "
                    f"HTTP {status}. Waiting {policy.retry_delay:.1f}s..."
                )
                await self._sleep(policy.retry_delay)
                continue

            try:
                payload = response.json()
            except ValueError as e:
                failures += 1
                if failures >= policy.max_attempts:
                    logger.error(f"Undecodable response for {description}: {e}")
                    return None
                logger.debug(f"Undecodable response for {description}, retrying")
                await self._sleep(policy.retry_delay)
                continue

            if (
                is_empty is not None
                and policy.retry_on_empty
                and not empty_retried
                and is_empty(payload)
            ):
                empty_retried = True
                logger.debug(f"Empty result for {description}, retrying once")
                await self._sleep(policy.retry_delay)
                continue

            return payload
