"""Outbound delivery of commands to backend devices.

Resolves a client id to a backend base URL through the registry and
POSTs the command JSON to ``{address}/api/alexa``. One attempt per
call, bounded by a timeout; failures surface as ForwardError and the
caller decides what the user hears or sees.
"""

from __future__ import annotations

import asyncio
import json
import logging
from dataclasses import dataclass
from typing import Any

import aiohttp

from .exceptions import ForwardError
from .registry import BackendRegistry

logger = logging.getLogger("skill-relay")

BACKEND_PATH = "/api/alexa"


@dataclass(frozen=True)
class BackendResponse:
    """What a backend answered to a forwarded command."""

    status: int
    body: Any
    address: str
    raw: bytes = b""
    content_type: str = "application/octet-stream"
    charset: str | None = None


def backend_url(address: str) -> str:
    return address.rstrip("/") + BACKEND_PATH


class Forwarder:
    """POST command payloads to the backend registered for a client id."""

    def __init__(self, registry: BackendRegistry, timeout_seconds: float = 5.0):
        self._registry = registry
        self._timeout = aiohttp.ClientTimeout(total=timeout_seconds)
        self._session: aiohttp.ClientSession | None = None

    def _get_session(self) -> aiohttp.ClientSession:
        if self._session is None:
            self._session = aiohttp.ClientSession(timeout=self._timeout)
        return self._session

    async def forward(self, client_id: str | None, payload: Any) -> BackendResponse:
        """Deliver ``payload`` to the backend for ``client_id``.

        Raises:
            ForwardError: timeout, connection failure, or a non-2xx reply.
        """
        address = await self._registry.resolve(client_id)
        url = backend_url(address)
        logger.info("Forwarding to backend at: %s", address)

        session = self._get_session()
        try:
            async with session.post(url, json=payload, timeout=self._timeout) as resp:
                status = resp.status
                raw = await resp.read()
                content_type = resp.content_type
                charset = resp.charset
        except asyncio.TimeoutError as e:
            logger.warning("Backend %s timed out", address)
            raise ForwardError(
                f"Timed out after {self._timeout.total}s waiting for {address}",
                address=address,
                cause=e,
            ) from e
        except aiohttp.ClientError as e:
            logger.warning("Error forwarding request to backend %s: %s", address, e)
            raise ForwardError(
                str(e) or e.__class__.__name__, address=address, cause=e
            ) from e

        if status >= 300:
            logger.warning("Backend %s replied HTTP %d", address, status)
            raise ForwardError(
                f"Request failed with status code {status}",
                address=address,
                status=status,
            )

        # JSON is recognised whatever content type the backend declared.
        try:
            text = raw.decode(charset or "utf-8", errors="replace")
        except LookupError:
            text = raw.decode("utf-8", errors="replace")
        body: Any = text
        if text:
            try:
                body = json.loads(text)
            except ValueError:
                body = text

        if client_id:
            await self._registry.touch(client_id)
        logger.debug("Response from backend %s: %s", address, body)
        return BackendResponse(
            status=status,
            body=body,
            address=address,
            raw=raw,
            content_type=content_type,
            charset=charset,
        )

    async def close(self) -> None:
        """Close the aiohttp session."""
        if self._session:
            await self._session.close()
            self._session = None
