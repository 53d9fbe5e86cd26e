"""Optional live check that a migrated credential reaches its endpoint."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Protocol

import httpx
import structlog

log = structlog.get_logger(__name__)

ANTHROPIC_VERSION = "2023-06-01"


@dataclass(frozen=True)
class ConnectivityResult:
    """Outcome of a connectivity check."""

    ok: bool
    message: str
    status_code: int | None = None


class ConnectivityCheck(Protocol):
    """Callable probing an endpoint with a credential."""

    async def __call__(self, base_url: str, token: str) -> ConnectivityResult: ...


class HttpConnectivityCheck:
    """Check an Anthropic-compatible endpoint over HTTP.

    The endpoint counts as reachable when it answers with any status below
    500 other than 401 or 403. Timeouts and transport errors are reported as
    failures, never raised.

    Example:
        >>> check = HttpConnectivityCheck(timeout=5.0)
        >>> result = await check("https://api.z.ai/api/anthropic", token)
        >>> result.ok
        True
    """

    def __init__(
        self,
        timeout: float = 10.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        """Initialize the check.

        Args:
            timeout: Request timeout in seconds
            transport: Transport override, used by tests
        """
        self.timeout = timeout
        self.transport = transport

    async def __call__(self, base_url: str, token: str) -> ConnectivityResult:
        url = base_url.rstrip("/")
        headers = {
            "x-api-key": token,
            "Authorization": f"Bearer {token}",
            "anthropic-version": ANTHROPIC_VERSION,
        }

        try:
            async with httpx.AsyncClient(timeout=self.timeout, transport=self.transport) as client:
                response = await client.get(url, headers=headers)
        except httpx.TimeoutException:
            log.warning("connectivity_check_timeout", url=url, timeout=self.timeout)
            return ConnectivityResult(ok=False, message=f"Request to {url} timed out after {self.timeout}s")
        except httpx.HTTPError as e:
            log.warning("connectivity_check_unreachable", url=url, error=str(e))
            return ConnectivityResult(ok=False, message=f"Could not reach {url}: {e}")

        status = response.status_code
        if status in (401, 403):
            return ConnectivityResult(
                ok=False,
                message=f"Endpoint rejected the credential (HTTP {status})",
                status_code=status,
            )
        if status >= 500:
            return ConnectivityResult(
                ok=False,
                message=f"Endpoint returned a server error (HTTP {status})",
                status_code=status,
            )

        log.debug("connectivity_check_passed", url=url, status_code=status)
        return ConnectivityResult(ok=True, message=f"Endpoint reachable (HTTP {status})", status_code=status)
