from drhub.infra.hub_client import HubClient, HubClientError
from drhub.infra.memory_hub import InMemoryHub

__all__ = [
    "HubClient",
    "HubClientError",
    "InMemoryHub",
]
