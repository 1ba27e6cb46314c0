"""GitHub REST client wrapper.

Provides:
- one shared connection pool for concurrent tool calls
- finite timeouts and no redirects
- no retries: each tool call maps to its GitHub calls exactly once
- safe error translation that preserves the upstream status code
"""

from __future__ import annotations

import json
import logging

import httpx

from .config import DEFAULT_API_BASE_URL, LimitsConfig
from .errors import UPSTREAM_FAILURE, ToolError, upstream_failure
from .request_builder import OutboundRequest
from .safety import redact_text

logger = logging.getLogger(__name__)

_AUTH_HINT = "Check that the configured token is valid and has the scopes this operation needs"


def _error_message(resp: httpx.Response) -> str | None:
    try:
        payload = resp.json()
    except (json.JSONDecodeError, UnicodeDecodeError):
        return None
    if not isinstance(payload, dict) or not isinstance(payload.get("message"), str):
        return None
    message = payload["message"]
    errors = payload.get("errors")
    if isinstance(errors, list):
        details = [e.get("message") or e.get("code") for e in errors if isinstance(e, dict)]
        details = [d for d in details if isinstance(d, str)]
        if details:
            message = f"{message} ({'; '.join(details)})"
    return redact_text(message)


def _rate_limit_hint(resp: httpx.Response) -> str | None:
    retry_after = resp.headers.get("Retry-After")
    if retry_after:
        return f"Rate limited by GitHub; retry after {retry_after} seconds"
    if resp.headers.get("X-RateLimit-Remaining") == "0":
        reset = resp.headers.get("X-RateLimit-Reset")
        if reset:
            return f"GitHub rate limit exhausted; resets at epoch {reset}"
        return "GitHub rate limit exhausted"
    return None


class GitHubClient:
    """Minimal GitHub REST client."""

    def __init__(
        self,
        *,
        token: str,
        limits: LimitsConfig,
        api_base_url: str = DEFAULT_API_BASE_URL,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        """Create a GitHub REST client.

        Args:
            token: Credential sent as a bearer token on every call.
            limits: Timeouts.
            api_base_url: REST root; GitHub Enterprise hosts use their /api/v3 root.
            transport: Optional httpx transport for tests.
        """
        self._token = token
        self._limits = limits
        self._api_base_url = api_base_url.rstrip("/")
        self._transport = transport
        self._client: httpx.AsyncClient | None = None

    def _headers(self) -> dict[str, str]:
        return {
            "Authorization": f"Bearer {self._token}",
            "Accept": "application/vnd.github+json",
            "X-GitHub-Api-Version": "2022-11-28",
            "User-Agent": "github-tools-mcp",
        }

    def _http(self) -> httpx.AsyncClient:
        if self._client is None:
            self._client = httpx.AsyncClient(
                base_url=self._api_base_url,
                headers=self._headers(),
                follow_redirects=False,
                timeout=httpx.Timeout(
                    timeout=self._limits.total_timeout_s,
                    connect=self._limits.connect_timeout_s,
                    read=self._limits.read_timeout_s,
                ),
                transport=self._transport,
            )
        return self._client

    async def aclose(self) -> None:
        """Close the shared connection pool."""
        if self._client is not None:
            await self._client.aclose()
            self._client = None

    async def send(self, request: OutboundRequest) -> object:
        """Send a built request and return decoded JSON (None for empty bodies)."""
        return await self.request_json(
            method=request.method,
            path=request.path,
            params=request.params,
            json_body=request.json_body,
        )

    async def request_json(
        self,
        *,
        method: str,
        path: str,
        json_body: dict | None = None,
        params: dict[str, str] | None = None,
    ) -> object:
        """Make a request and return decoded JSON.

        GitHub APIs may return either an object (dict) or an array (list). 204 responses and
        empty bodies decode to None.

        Raises:
            ToolError: UpstreamFailure for transport errors, non-2xx statuses and invalid JSON.
        """
        try:
            resp = await self._http().request(method, path, json=json_body, params=params)
        except httpx.TimeoutException as exc:
            logger.warning("GitHub request timed out: %s %s", method, path)
            raise upstream_failure("GitHub request timed out") from exc
        except httpx.HTTPError as exc:
            logger.warning("GitHub request failed: %s %s (%s)", method, path, type(exc).__name__)
            raise upstream_failure("Network request failed") from exc

        logger.debug("GitHub %s %s -> %s", method, path, resp.status_code)

        if not resp.is_success:
            raise self._translate_error(resp)

        if resp.status_code == 204 or not resp.content.strip():
            return None

        try:
            return resp.json()
        except (json.JSONDecodeError, UnicodeDecodeError) as exc:
            raise upstream_failure("GitHub returned invalid JSON", status_code=resp.status_code) from exc

    def _translate_error(self, resp: httpx.Response) -> ToolError:
        status = resp.status_code
        upstream_message = _error_message(resp)

        details = None
        rate_hint = _rate_limit_hint(resp) if status in (403, 429) else None
        if rate_hint:
            hint = f"{rate_hint}: {upstream_message}" if upstream_message else rate_hint
            details = {"rate_limited": True}
        elif status in (401, 403):
            hint = f"{upstream_message}. {_AUTH_HINT}" if upstream_message else _AUTH_HINT
        else:
            hint = upstream_message

        logger.info("GitHub returned %s: %s", status, upstream_message or "<no message>")
        return ToolError(
            code=UPSTREAM_FAILURE,
            message=f"GitHub request failed with status {status}",
            hint=hint,
            status_code=status,
            details=details,
        )
