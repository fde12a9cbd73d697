"""Host API exposed to sources while they run under the harness."""

import json
import logging
from collections.abc import Iterable, Mapping
from typing import Any

import httpx

from sourcekit.core.errors import CapabilityUnsupportedError
from sourcekit.models.results import FetchResponse, Item
from sourcekit.utils.logging_config import get_logger
from sourcekit.utils.settings import DEFAULT_TIMEOUT_MS

logger = get_logger(__name__)
source_logger = get_logger("sourcekit.source")

LOG_LEVELS = {
    "debug": logging.DEBUG,
    "info": logging.INFO,
    "warn": logging.WARNING,
    "warning": logging.WARNING,
    "error": logging.ERROR,
}


class StorageAPI:
    """Key-value storage that lives for one harness run."""

    def __init__(self) -> None:
        self._data: dict[str, Any] = {}

    def get(self, key: str) -> Any:
        return self._data.get(key)

    def set(self, key: str, value: Any) -> None:
        self._data[key] = value


class ConfigAPI:
    """Read-only view over the resolved config."""

    def __init__(self, values: Mapping[str, Any]) -> None:
        self._values = dict(values)

    def get(self, key: str) -> Any:
        return self._values.get(key)

    def get_all(self) -> dict[str, Any]:
        return dict(self._values)

    getAll = get_all


class WebSocketAPI:
    """Realtime transport is not available under the harness."""

    def connect(self, url: str, callbacks: Any = None) -> Any:
        logger.warning("Source attempted a websocket connection", extra={"url": url})
        raise CapabilityUnsupportedError("WebSocket is not supported in test mode")


class SourceAPI:
    """The capability object passed to a source's factory.

    Owns the emission log and storage for a single run. All access happens
    on the event loop thread, so neither structure is locked.
    """

    def __init__(
        self,
        config: Mapping[str, Any],
        client: httpx.AsyncClient | None = None,
        fetch_timeout_ms: int = DEFAULT_TIMEOUT_MS,
        app_version: str = "99.0.0",
    ) -> None:
        self._emitted: list[tuple[int, list[Item]]] = []
        self._client = client
        self._owns_client = client is None
        self.fetch_timeout_ms = fetch_timeout_ms
        self.storage = StorageAPI()
        self.config = ConfigAPI(config)
        self.websocket = WebSocketAPI()
        self.app_version = app_version
        self.appVersion = app_version

    # -- emit ---------------------------------------------------------------

    def emit(self, items: Iterable[Item]) -> None:
        """Record one emission batch.

        Anything that is not a collection of items is stored as a
        one-element batch and left for the validator to reject.
        """
        if isinstance(items, (Mapping, str, bytes)) or not isinstance(items, Iterable):
            batch = [items]
        else:
            try:
                batch = list(items)
            except Exception as e:
                logger.warning(
                    "Source emitted an unreadable batch",
                    extra={"error": str(e), "error_type": type(e).__name__},
                )
                batch = []
        self._emitted.append((len(self._emitted), batch))
        logger.debug(
            "Source emitted batch",
            extra={"sequence": len(self._emitted) - 1, "item_count": len(batch)},
        )

    @property
    def emitted(self) -> list[list[Item]]:
        return [batch for _, batch in self._emitted]

    @property
    def emit_count(self) -> int:
        return len(self._emitted)

    def batches_since(self, count: int) -> list[list[Item]]:
        """Batches emitted after the first ``count`` ones."""
        return [batch for sequence, batch in self._emitted if sequence >= count]

    # -- fetch --------------------------------------------------------------

    def _get_client(self) -> httpx.AsyncClient:
        if self._client is None:
            self._client = httpx.AsyncClient(follow_redirects=True)
        return self._client

    async def fetch(
        self, url: str, options: Mapping[str, Any] | None = None
    ) -> FetchResponse:
        """Perform an HTTP request; failures come back as ``ok=False``."""
        options = options or {}
        timeout_ms = options.get("timeout")
        if timeout_ms is None:
            timeout_ms = self.fetch_timeout_ms

        try:
            response = await self._get_client().request(
                options.get("method", "GET"),
                url,
                headers=options.get("headers"),
                content=options.get("body"),
                timeout=timeout_ms / 1000,
            )
        except Exception as e:
            logger.info(
                "Fetch failed",
                extra={"url": url, "error": str(e), "error_type": type(e).__name__},
            )
            return FetchResponse(
                ok=False,
                status=0,
                headers={},
                text="",
                error=str(e) or type(e).__name__,
            )

        text = response.text
        try:
            body = json.loads(text)
        except ValueError:
            body = None

        logger.debug(
            "Fetch completed",
            extra={"url": url, "status": response.status_code},
        )
        return FetchResponse(
            ok=response.is_success,
            status=response.status_code,
            headers={key.lower(): value for key, value in response.headers.items()},
            text=text,
            json=body,
        )

    # -- log ----------------------------------------------------------------

    def log(self, level: str, message: str) -> None:
        source_logger.log(
            LOG_LEVELS.get(str(level).lower(), logging.INFO),
            message,
            extra={"source_level": level},
        )

    async def aclose(self) -> None:
        """Close the HTTP client if this API created it."""
        if self._client is not None and self._owns_client:
            await self._client.aclose()
            self._client = None
