"""Shared plumbing for provider API clients."""

import asyncio
from collections.abc import Awaitable, Callable, Collection
import json
from typing import Any, TypeVar

import httpx

from clawhost.errors import ProviderAPIError, ProviderTerminalStateError, ProviderTimeoutError
from clawhost.logging_config import get_logger

logger = get_logger(__name__)

T = TypeVar("T")


class ProviderClient:
    """Bearer-token JSON client for one provider API.

    Subclasses set `provider` and `base_url` and add resource methods on top of
    `_request` and `_graphql`.
    """

    provider: str = "provider"
    base_url: str = ""

    def __init__(self, token: str, timeout: float = 30.0):
        self._token = token
        self.timeout = timeout

    def _headers(self) -> dict[str, str]:
        return {
            "Authorization": f"Bearer {self._token}",
            "Content-Type": "application/json",
            "Accept": "application/json",
        }

    async def _request(
        self,
        method: str,
        path: str,
        json_body: Any = None,
        params: dict[str, Any] | None = None,
    ) -> Any:
        """Send a REST request and decode the JSON body.

        Returns {} for 204 and empty bodies.

        Raises:
            ProviderAPIError: Non-2xx status or transport failure.
        """
        url = f"{self.base_url}{path}"
        try:
            async with httpx.AsyncClient(timeout=self.timeout) as client:
                resp = await client.request(
                    method, url, headers=self._headers(), json=json_body, params=params
                )
        except httpx.RequestError as e:
            logger.error(
                "provider_request_failed",
                provider=self.provider,
                method=method,
                path=path,
                error=str(e),
                error_type=type(e).__name__,
            )
            raise ProviderAPIError(self.provider, None, str(e)) from e

        if resp.is_error:
            logger.error(
                "provider_api_error",
                provider=self.provider,
                method=method,
                path=path,
                status_code=resp.status_code,
                body=resp.text[:500],
            )
            raise ProviderAPIError(self.provider, resp.status_code, resp.text)

        if resp.status_code == httpx.codes.NO_CONTENT or not resp.content:
            return {}
        return resp.json()

    async def _graphql(
        self, url: str, query: str, variables: dict[str, Any] | None = None
    ) -> dict[str, Any]:
        """Run a GraphQL operation and return its `data` object.

        Raises:
            ProviderAPIError: Non-2xx status, transport failure or an `errors` payload.
        """
        try:
            async with httpx.AsyncClient(timeout=self.timeout) as client:
                resp = await client.post(
                    url,
                    headers=self._headers(),
                    json={"query": query, "variables": variables or {}},
                )
        except httpx.RequestError as e:
            raise ProviderAPIError(self.provider, None, str(e)) from e

        if resp.is_error:
            logger.error(
                "provider_graphql_http_error",
                provider=self.provider,
                status_code=resp.status_code,
                body=resp.text[:500],
            )
            raise ProviderAPIError(self.provider, resp.status_code, resp.text)

        result = resp.json()
        if result.get("errors"):
            logger.error("provider_graphql_errors", provider=self.provider, errors=result["errors"])
            raise ProviderAPIError(
                self.provider, resp.status_code, f"GraphQL errors: {json.dumps(result['errors'])}"
            )
        return result.get("data") or {}


async def wait_for_state(
    fetch: Callable[[], Awaitable[T]],
    *,
    get_state: Callable[[T], str],
    target_state: str,
    terminal_states: Collection[str],
    timeout: float,
    poll_interval: float,
    provider: str,
    resource: str,
) -> T:
    """Poll `fetch` until the resource reaches `target_state`.

    The resource is fetched at least once, even with a zero timeout.

    Args:
        fetch: Coroutine factory returning the current resource.
        get_state: Extracts the state string from the resource.
        target_state: State to wait for.
        terminal_states: States that abort the wait immediately.
        timeout: Maximum wait time in seconds
        poll_interval: Polling interval in seconds
        provider: Provider name for logs.
        resource: Resource description for logs and errors.

    Returns:
        The last fetched resource (in `target_state`).

    Raises:
        ProviderTerminalStateError: A terminal state was observed.
        ProviderTimeoutError: The target state was not reached within `timeout`.
    """
    loop = asyncio.get_running_loop()
    start_time = loop.time()

    while True:
        current = await fetch()
        state = get_state(current)
        logger.debug("provider_resource_state", provider=provider, resource=resource, state=state)

        if state == target_state:
            logger.info(
                "provider_resource_ready", provider=provider, resource=resource, state=state
            )
            return current

        if state in terminal_states:
            logger.error(
                "provider_resource_terminal_state",
                provider=provider,
                resource=resource,
                state=state,
            )
            raise ProviderTerminalStateError(
                f"{resource} entered terminal state: {state}", state=state
            )

        if loop.time() - start_time >= timeout:
            raise ProviderTimeoutError(
                f"Timeout waiting for {resource} to reach state {target_state} "
                f"(last state: {state}, waited {timeout}s)"
            )

        await asyncio.sleep(poll_interval)
