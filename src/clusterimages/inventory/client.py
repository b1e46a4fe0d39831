"""Async client for the cloud inventory service."""

from __future__ import annotations

from typing import Optional
from urllib.parse import quote

import httpx
import structlog
from opentelemetry import trace

from ..common.schemas import CatalogImage, ServerGroupSummary
from ..common.settings import FindImageSettings

LOGGER = structlog.get_logger("clusterimages.inventory")
TRACER = trace.get_tracer("clusterimages.inventory")


def _segment(value: str) -> str:
    return quote(str(value), safe="")


class InventoryClient:
    """Read-only access to server group summaries and the image catalog.

    Non-2xx responses surface as :class:`httpx.HTTPStatusError` so callers can
    inspect the status code and error body themselves.
    """

    def __init__(
        self,
        base_url: str,
        *,
        token: Optional[str] = None,
        timeout: float = 30.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        headers = {"Accept": "application/json"}
        if token:
            headers["Authorization"] = f"Bearer {token}"
        self._base_url = str(base_url).rstrip("/")
        self._http = httpx.AsyncClient(
            base_url=self._base_url,
            headers=headers,
            timeout=timeout,
            transport=transport,
        )

    @classmethod
    def from_settings(
        cls,
        settings: FindImageSettings,
        *,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> "InventoryClient":
        token = settings.inventory_token.get_secret_value() if settings.inventory_token else None
        return cls(
            str(settings.inventory_base_url),
            token=token,
            timeout=settings.inventory_timeout_seconds,
            transport=transport,
        )

    async def __aenter__(self) -> "InventoryClient":
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        await self._http.aclose()

    async def get_server_group_summary(
        self,
        application: str,
        account: str,
        cluster: str,
        cloud_provider: str,
        scope: str,
        target: str,
        summary_type: str,
        only_enabled: bool,
    ) -> ServerGroupSummary:
        path = "/".join(
            [
                "/applications",
                _segment(application),
                "clusters",
                _segment(account),
                _segment(cluster),
                _segment(cloud_provider),
                _segment(scope),
                "serverGroups",
                "target",
                _segment(target),
                _segment(summary_type),
            ]
        )
        params = {"onlyEnabled": "true" if only_enabled else "false"}
        with TRACER.start_as_current_span("inventory.server_group_summary") as span:
            span.set_attribute("inventory.cluster", cluster)
            span.set_attribute("inventory.scope", scope)
            LOGGER.debug("Fetching server group summary", cluster=cluster, account=account, scope=scope, target=target)
            response = await self._http.get(path, params=params)
            response.raise_for_status()
            return ServerGroupSummary.model_validate(response.json())

    async def find_image(
        self,
        cloud_provider: str,
        query: str,
        account: str,
        region: Optional[str] = None,
    ) -> list[CatalogImage]:
        params = {"q": query, "account": account}
        if region is not None:
            params["region"] = region
        with TRACER.start_as_current_span("inventory.find_image") as span:
            span.set_attribute("inventory.query", query)
            LOGGER.debug("Searching image catalog", cloud_provider=cloud_provider, query=query, account=account)
            response = await self._http.get(f"/{_segment(cloud_provider)}/images/find", params=params)
            response.raise_for_status()
            return [CatalogImage.model_validate(item) for item in response.json()]
