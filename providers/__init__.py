"""
Azure resource providers.

Each provider merges, validates, splits and creates one resource type,
encapsulating the created resources in a ComponentResource per bucket:

- **CosmosProvider** (``cosmos``): Cosmos DB account with SQL databases and
  containers; 100 containers per account.
- **FunctionsProvider** (``functions``): Function App with host storage and
  plan; 200 functions per app.
- **StorageProvider** (``storage``): Storage account with containers, queues
  and optional static website; 250 containers per account.
"""

from providers.cosmos import CosmosProvider
from providers._helpers import namespace_setting
from providers.functions import FunctionsProvider
from providers.storage import StorageProvider

__all__ = [
    "CosmosProvider",
    "FunctionsProvider",
    "StorageProvider",
    "default_providers",
    "namespace_setting",
]


def default_providers() -> tuple[CosmosProvider, FunctionsProvider, StorageProvider]:
    return CosmosProvider(), FunctionsProvider(), StorageProvider()
