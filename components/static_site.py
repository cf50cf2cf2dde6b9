"""
Static site component: static website hosting on a (possibly shared)
storage account.

Declares a storage requirement with static website hosting enabled and a
publicly readable content container. The ``web_endpoint`` output is an
``Output[str]`` so other components can use it as a CNAME target.
"""

from dataclasses import dataclass
from typing import Any

import pulumi

from backend.definition import BackendComponent
from backend.requirements import ResourceRequirement, ValidationResult
from backend.resource_map import ScopedResources
from providers._helpers import endpoint_host

ID: str = "composer:components:StaticSite"


@dataclass(frozen=True)
class StaticSiteConfig:
    """
    Settings of one static site.

    Attributes:
        storage_key: Requirement key of the storage account.
        content_container: Public container for site assets.
        index_document: Document served for directory requests.
        error404_document: Document served for missing paths.
        sku: Storage account SKU.
    """

    storage_key: str = "site"
    content_container: str = "content"
    index_document: str = "index.html"
    error404_document: str = "404.html"
    sku: str = "Standard_LRS"


class StaticSiteResource(pulumi.ComponentResource):
    """Exposes the website endpoints of the storage account serving the site."""

    def __init__(
        self,
        name: str,
        account: Any,
        content_container: str,
        opts: pulumi.ResourceOptions | None = None,
    ):
        super().__init__(ID, name, None, opts)

        self.web_endpoint: pulumi.Output[str] = account.primary_web_endpoint
        self.web_host: pulumi.Output[str] = self.web_endpoint.apply(
            lambda url: endpoint_host(url) if url else None
        )
        self.content_url: pulumi.Output[str] = pulumi.Output.concat(
            account.primary_blob_endpoint,
            content_container,
            "/",
        )
        self.register_outputs(
            {
                "web_endpoint": self.web_endpoint,
                "web_host": self.web_host,
                "content_url": self.content_url,
            }
        )


class StaticSite(BackendComponent[StaticSiteConfig]):
    component_type = "StaticSite"

    def get_requirements(self) -> list[ResourceRequirement]:
        config = self.config
        return [
            ResourceRequirement(
                resource_type="storage",
                requirement_key=config.storage_key,
                config={
                    "sku": config.sku,
                    "kind": "StorageV2",
                    "allow_blob_public_access": True,
                    "static_website": {
                        "index_document": config.index_document,
                        "error404_document": config.error404_document,
                    },
                    "containers": [{"name": config.content_container, "public_access": "Blob"}],
                },
            )
        ]

    def validate_resources(self, resources: ScopedResources) -> ValidationResult:
        result = super().validate_resources(resources)
        if not result.valid:
            return result
        storage = resources.get_resource("storage", self.config.storage_key)
        if storage.provider_metadata.get("static_website") is False:
            return result.merge(
                ValidationResult.from_messages(
                    [f"Storage account {storage.concrete_key} does not host a static website"]
                )
            )
        return result

    def setup(self, resources: ScopedResources, scope: Any) -> None:
        opts = pulumi.ResourceOptions(parent=scope) if isinstance(scope, pulumi.Resource) else None
        self.resource = StaticSiteResource(
            name=self.component_id,
            account=resources.handle("storage", self.config.storage_key),
            content_container=self.config.content_container,
            opts=opts,
        )

    def outputs(self):
        return {
            "web_endpoint": self.resource.web_endpoint,
            "web_host": self.resource.web_host,
            "content_url": self.resource.content_url,
        }
