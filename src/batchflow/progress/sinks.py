"""
Dashboard sinks for BatchFlow.

A sink receives the structured dashboard export and hands it to whatever
renders it (a browser page polling a JSON file, an HTTP endpoint, ...). The
orchestrator only serializes; rendering is the collaborator's business.
"""

from __future__ import annotations

import asyncio
import json
import os
import tempfile
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Any

import httpx
from tenacity import (
    retry,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
)

from batchflow.utils.errors import DashboardError
from batchflow.utils.logging import get_logger

logger = get_logger(__name__)


class DashboardSink(ABC):
    """Receives dashboard exports."""

    @property
    @abstractmethod
    def target(self) -> str:
        """Human readable destination, used in logs and errors."""

    @abstractmethod
    async def publish(self, payload: dict[str, Any]) -> None:
        """
        Hand one export to the collaborator.

        Called off the scheduler's critical path; the payload is a plain
        snapshot that is never mutated afterwards.

        Raises:
            DashboardError: If the export could not be delivered
        """

    async def close(self) -> None:
        """Release resources held by the sink."""


class FileDashboardSink(DashboardSink):
    """
    Writes each export as a JSON document, replacing the previous one.

    The file is written to a temporary sibling and renamed into place so a
    reader never sees a half-written document.
    """

    def __init__(self, path: str | Path, indent: int | None = 2) -> None:
        self._path = Path(path)
        self._indent = indent

    @property
    def target(self) -> str:
        return str(self._path)

    @property
    def path(self) -> Path:
        return self._path

    async def publish(self, payload: dict[str, Any]) -> None:
        loop = asyncio.get_running_loop()
        try:
            await loop.run_in_executor(None, self._write, payload)
        except OSError as e:
            raise DashboardError(self.target, str(e), cause=e) from e

    @retry(
        stop=stop_after_attempt(3),
        wait=wait_exponential(multiplier=0.05, min=0.05, max=0.5),
        retry=retry_if_exception_type(OSError),
        reraise=True,
    )
    def _write(self, payload: dict[str, Any]) -> None:
        self._path.parent.mkdir(parents=True, exist_ok=True)
        fd, tmp_name = tempfile.mkstemp(
            prefix=f".{self._path.name}.", suffix=".tmp", dir=self._path.parent
        )
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as f:
                json.dump(payload, f, indent=self._indent, default=str)
            os.replace(tmp_name, self._path)
        except BaseException:
            if os.path.exists(tmp_name):
                os.unlink(tmp_name)
            raise


class HttpDashboardSink(DashboardSink):
    """
    POSTs each export as JSON to an HTTP endpoint.

    Transport errors are retried a few times with a short backoff; non-2xx
    responses are reported as DashboardError. The request runs on the event
    loop without blocking it, so sampling continues while an export is in
    flight.
    """

    def __init__(
        self,
        url: str,
        timeout: float = 2.0,
        headers: dict[str, str] | None = None,
        client: httpx.AsyncClient | None = None,
    ) -> None:
        self._url = url
        self._timeout = timeout
        self._headers = headers
        self._owns_client = client is None
        self._client = client

    @property
    def target(self) -> str:
        return self._url

    async def _get_client(self) -> httpx.AsyncClient:
        if self._client is None or self._client.is_closed:
            self._client = httpx.AsyncClient(
                timeout=httpx.Timeout(self._timeout),
                headers=self._headers,
            )
            self._owns_client = True
        return self._client

    async def publish(self, payload: dict[str, Any]) -> None:
        try:
            response = await self._post(payload)
        except httpx.HTTPError as e:
            raise DashboardError(self.target, str(e), cause=e) from e

        if response.is_error:
            raise DashboardError(
                self.target, f"endpoint answered {response.status_code}"
            )

    @retry(
        stop=stop_after_attempt(3),
        wait=wait_exponential(multiplier=0.1, min=0.1, max=1),
        retry=retry_if_exception_type(httpx.TransportError),
        reraise=True,
    )
    async def _post(self, payload: dict[str, Any]) -> httpx.Response:
        client = await self._get_client()
        content = json.dumps(payload, default=str)
        return await client.post(
            self._url,
            content=content,
            headers={"Content-Type": "application/json"},
        )

    async def close(self) -> None:
        if self._owns_client and self._client is not None and not self._client.is_closed:
            await self._client.aclose()
            self._client = None


def create_sink(path: str | Path | None = None, url: str | None = None) -> DashboardSink:
    """Pick the HTTP sink when a URL is configured, otherwise the file sink."""
    if url:
        return HttpDashboardSink(url)
    return FileDashboardSink(path or "batchflow-dashboard.json")
