from __future__ import annotations

from typing import Any

import pytest

from drhub.infra.memory_hub import InMemoryHub
from drhub.services.dr_service import DRService
from tests.builders import make_settings, protected_subscription_app


@pytest.fixture
def resources() -> dict[str, list[dict[str, Any]]]:
    return protected_subscription_app()


@pytest.fixture
def hub(resources: dict[str, list[dict[str, Any]]]) -> InMemoryHub:
    return InMemoryHub(resources)


@pytest.fixture
def service(hub: InMemoryHub) -> DRService:
    return DRService(hub=hub, config=make_settings())
