"""Async HTTP transport for the Arweave gateway and the rate oracle.

The transport executes exactly one HTTP exchange per call:

1. Send the request.
2. If the status is one of *expected* -- return the response.
3. On any other status, or a network-level failure -- raise
   :class:`~arlink.errors.ArlinkTransientError`.

It never retries on its own.  Retrying is a policy of the caller: the
submitter retries whole submissions, the estimator falls back to a local
price and the tracker simply tries again on its next sweep.
"""

from __future__ import annotations

import json as _json
import logging
import sys
import time
from collections.abc import Iterable
from typing import Any

import httpx

from arlink.config import ArlinkConfig
from arlink.errors import ArlinkTransientError
from arlink.observability import NoopMetricsHook
from arlink.utils.redact import redact

# Any failure to complete an exchange, proxy and protocol errors included.
_NETWORK_ERRORS = httpx.RequestError


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------

def _metric_path(path: str) -> str:
    """Collapse ids in *path* so metric tags stay low-cardinality."""
    parts = path.split("?", 1)[0].strip("/").split("/")
    if not parts or not parts[0]:
        return "/"
    return "/" + parts[0]


def _dump_payload(
    method: str,
    url: str,
    payload: Any | None,
    response_status: int | None,
    response_body: Any | None,
) -> None:
    """Write a redacted debug dump of the request/response to stderr."""
    dump: dict[str, Any] = {
        "method": method,
        "url": url,
    }
    if payload is not None:
        dump["request_body"] = payload
    if response_status is not None:
        dump["response_status"] = response_status
    if response_body is not None:
        dump["response_body"] = response_body
    print(
        _json.dumps(redact(dump), indent=2, default=str),
        file=sys.stderr,
    )


# ---------------------------------------------------------------------------
# Async transport
# ---------------------------------------------------------------------------

class AsyncGatewayTransport:
    """Asynchronous HTTP transport rooted at the configured gateway.

    Parameters
    ----------
    config:
        Supplies the gateway URL, timeout, proxy and metrics hook.
    logger:
        Logger for request diagnostics.
    transport:
        Optional ``httpx`` transport.  Tests pass an
        :class:`httpx.MockTransport` here.
    """

    def __init__(
        self,
        config: ArlinkConfig,
        logger: logging.Logger,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self._config = config
        self._log = logger
        self._metrics = config.metrics if config.metrics is not None else NoopMetricsHook()

        proxy: httpx.URL | str | None = config.http_proxy
        self._client = httpx.AsyncClient(
            base_url=config.gateway_url.rstrip("/"),
            timeout=httpx.Timeout(config.timeout_seconds),
            proxy=proxy if transport is None else None,
            transport=transport,
        )

    # -- public API --------------------------------------------------------

    async def request(
        self,
        method: str,
        path: str,
        *,
        expected: Iterable[int] = (200,),
        **kwargs: Any,
    ) -> httpx.Response:
        """Execute one HTTP request.

        Parameters
        ----------
        method:
            HTTP method.
        path:
            Path relative to the gateway, or an absolute URL (used for the
            rate oracle).
        expected:
            Status codes treated as success.
        **kwargs:
            Forwarded to :meth:`httpx.AsyncClient.request`.

        Returns
        -------
        httpx.Response
            The response, whose status is one of *expected*.

        Raises
        ------
        ArlinkTransientError
            On network failure or an unexpected status.
        """
        expected = tuple(expected)
        tag_path = _metric_path(path) if not path.startswith("http") else "external"

        t0 = time.monotonic()
        try:
            response = await self._client.request(method, path, **kwargs)
        except _NETWORK_ERRORS as exc:
            self._metrics.increment(
                "arlink.requests_total",
                tags={"method": method, "path": tag_path, "status": "error"},
            )
            self._log.warning(
                "Request network error",
                extra={
                    "extra_fields": {
                        "op": "request",
                        "method": method,
                        "path": path,
                        "error": str(exc),
                    }
                },
            )
            raise ArlinkTransientError(
                message=f"Network error on {method} {path}: {exc}",
                context={"url": path, "method": method},
                cause=exc,
            ) from exc
        elapsed_ms = (time.monotonic() - t0) * 1000

        status = str(response.status_code)
        self._metrics.increment(
            "arlink.requests_total",
            tags={"method": method, "path": tag_path, "status": status},
        )
        self._metrics.timing(
            "arlink.request_duration_ms",
            elapsed_ms,
            tags={"method": method, "path": tag_path, "status": status},
        )

        if self._config.debug_dump_payload:
            _dump_payload(
                method,
                str(response.url),
                kwargs.get("json"),
                response.status_code,
                response.text[:1000],
            )

        if response.status_code not in expected:
            self._log.warning(
                "Unexpected response status",
                extra={
                    "extra_fields": {
                        "op": "request",
                        "method": method,
                        "path": path,
                        "status_code": response.status_code,
                    }
                },
            )
            raise ArlinkTransientError(
                message=(
                    f"Unexpected status {response.status_code} on {method} {path}: "
                    f"{response.text[:200]}"
                ),
                context={"url": path, "method": method, "status_code": response.status_code},
            )
        return response

    async def get_text(self, path: str) -> str:
        """``GET`` *path* and return the stripped response body."""
        response = await self.request("GET", path)
        return response.text.strip()

    async def get_json(self, path: str) -> Any:
        """``GET`` *path* and return the decoded JSON body.

        Raises
        ------
        ArlinkTransientError
            If the body is not valid JSON.
        """
        response = await self.request("GET", path)
        try:
            return response.json()
        except ValueError as exc:
            raise ArlinkTransientError(
                message=f"Malformed JSON from GET {path}",
                context={"url": path, "method": "GET", "status_code": response.status_code},
                cause=exc,
            ) from exc

    async def close(self) -> None:
        """Close the underlying async HTTP client and release resources."""
        await self._client.aclose()

    async def __aenter__(self) -> AsyncGatewayTransport:
        return self

    async def __aexit__(self, *exc: object) -> None:
        await self.close()
