"""
Built-in backend components.

Each component declares its resource requirements and, once the backend has
provided them, encapsulates its own outputs in a ComponentResource. Use from
the Pulumi entrypoint (e.g. __main__.py) through ``define_backend``:

- **CrudApi**: Cosmos DB container + CRUD functions on a shared Function App;
  exposes api_url and cosmos_endpoint.
- **StaticSite**: static website on a storage account; exposes web_endpoint
  for DNS.
"""

from components.crud_api import CrudApi, CrudApiConfig
from components.static_site import StaticSite, StaticSiteConfig

__all__ = ["CrudApi", "CrudApiConfig", "StaticSite", "StaticSiteConfig"]
