"""Общий HTTP-слой для веб-API Mapbox."""

from __future__ import annotations

import logging
import time
from typing import Any, Mapping, TypeVar

import httpx
from opentelemetry import trace
from pydantic import BaseModel, ValidationError

from src.common.metrics import UPSTREAM_LATENCY

from . import deps
from .errors import ConfigurationError, NetworkError, ServiceError

logger = logging.getLogger(__name__)

ModelT = TypeVar("ModelT", bound=BaseModel)

SERVICE_NAME = "stop_planner"


def _error_detail(response: httpx.Response) -> str | None:
    """Достаём читаемое сообщение из тела ошибки Mapbox."""

    try:
        body = response.json()
    except ValueError:
        text = response.text.strip()
        return text[:200] or None
    if isinstance(body, dict):
        message = body.get("message") or body.get("error")
        if message:
            return str(message)
    return None


class MapboxClient:
    """Базовый клиент для ``api.mapbox.com``.

    Наследники задают :attr:`upstream` (метки метрик и имя спана) и вызывают
    :meth:`_get` с путём относительно базового URL. Без токена доступа
    клиент в сеть не ходит.
    """

    upstream = "mapbox"
    _tracer = trace.get_tracer(__name__)

    def __init__(
        self,
        settings: deps.Settings,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self._access_token = settings.mapbox_access_token or None
        self._base_url = settings.mapbox_base_url.rstrip("/")
        self._timeout = settings.mapbox_timeout
        self._transport = transport

    @property
    def is_configured(self) -> bool:
        return self._access_token is not None

    def _require_token(self) -> str:
        if self._access_token is None:
            raise ConfigurationError()
        return self._access_token

    async def _get(
        self, path: str, params: Mapping[str, str], model: type[ModelT]
    ) -> ModelT:
        """GET-запрос к ``path`` с проверкой JSON-ответа по ``model``."""

        query: dict[str, Any] = dict(params)
        query["access_token"] = self._require_token()
        start = time.perf_counter()
        with self._tracer.start_as_current_span(f"mapbox.{self.upstream}") as span:
            try:
                async with httpx.AsyncClient(
                    base_url=self._base_url,
                    timeout=self._timeout,
                    transport=self._transport,
                ) as client:
                    response = await client.get(path, params=query)
            except httpx.RequestError as exc:
                logger.warning("Mapbox %s request failed: %s", self.upstream, exc)
                raise NetworkError() from exc
            finally:
                UPSTREAM_LATENCY.labels(SERVICE_NAME, self.upstream).observe(
                    time.perf_counter() - start
                )
            span.set_attribute("http.status_code", response.status_code)

        if not response.is_success:
            detail = _error_detail(response)
            logger.warning(
                "Mapbox %s answered %s: %s", self.upstream, response.status_code, detail
            )
            raise ServiceError(response.status_code, detail)
        try:
            return model.model_validate(response.json())
        except (ValueError, ValidationError) as exc:
            logger.warning("Mapbox %s returned an unreadable body", self.upstream)
            raise ServiceError(
                response.status_code, "unexpected response payload"
            ) from exc
