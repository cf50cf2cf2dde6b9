"""
Component backend - Azure Pulumi entrypoint.

Declares a small application as independent components and lets the backend
share the Azure resources they need:

- **UserApi / ProductApi / OrderApi**: CRUD APIs whose containers land in one
  shared Cosmos DB account and whose functions land in one Function App.
- **Website**: static site on its own storage account.

Stack exports: <component>_<output> for every component output, plus
resource_group_name.
"""

import pulumi
import pulumi_azure_native as azure_native

from backend.builder import define_backend
from components import CrudApi, CrudApiConfig, StaticSite, StaticSiteConfig
from config import StackConfig


def main():
    """
    Build the resource group and backend, initialize it and export outputs.

    Reads config (project_name, environment, location and optional backend
    overrides), declares the components, runs the backend and exports each
    component's outputs.
    """
    config = StackConfig.from_pulumi_config(pulumi.Config())

    rg = azure_native.resources.ResourceGroup(
        resource_name=config.resource_group_name,
        resource_group_name=config.resource_group_name,
        location=config.location,
    )

    backend = define_backend(
        {
            "UserApi": CrudApi.define("UserApi", CrudApiConfig(entity_name="User")),
            "ProductApi": CrudApi.define("ProductApi", CrudApiConfig(entity_name="Product")),
            "OrderApi": CrudApi.define(
                "OrderApi",
                CrudApiConfig(entity_name="Order", partition_key="/customerId"),
            ),
            "Website": StaticSite.define("Website", StaticSiteConfig()),
        },
        config=config.backend_config(resource_group_name=rg.name),
        backend_id=config.backend_id,
    )
    backend.initialize()

    for warning in backend.warnings:
        pulumi.log.warn(warning)
    pulumi.log.info(
        f"Backend {backend.backend_id}: {len(backend.resources)} shared resource(s) "
        f"for {len(backend.components)} component(s)"
    )

    pulumi.export("resource_group_name", rg.name)
    for component_id, outputs in backend.outputs().items():
        for output_name, value in outputs.items():
            pulumi.export(f"{component_id}_{output_name}", value)


if __name__ == "__main__":
    main()
