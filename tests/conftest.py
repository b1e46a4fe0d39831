from __future__ import annotations

from typing import Any, AsyncIterator, Callable, Optional

import pytest
import pytest_asyncio

from clusterimages.common import observability
from clusterimages.common.settings import FindImageSettings
from clusterimages.inventory.client import InventoryClient
from clusterimages.tasks.find_image import FindImageFromClusterTask
from tests.utils.inventory import FakeInventory


@pytest.fixture(scope="session", autouse=True)
def _structured_logging() -> None:
    observability.configure_logging("clusterimages.tests", "DEBUG")


@pytest.fixture
def inventory() -> FakeInventory:
    return FakeInventory()


@pytest_asyncio.fixture
async def make_task(inventory: FakeInventory) -> AsyncIterator[Callable[..., FindImageFromClusterTask]]:
    clients: list[InventoryClient] = []

    def _factory(settings: Optional[FindImageSettings] = None, **overrides: Any) -> FindImageFromClusterTask:
        client = inventory.client()
        clients.append(client)
        return FindImageFromClusterTask(client, settings or FindImageSettings(**overrides))

    yield _factory
    for client in clients:
        await client.aclose()
