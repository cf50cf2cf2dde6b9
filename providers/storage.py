"""
Azure Storage provider: Storage Account + blob containers + queues.

Requirements of type ``storage`` sharing a key become one storage account.
Configuration fields (all optional):

- ``sku``: account SKU; the highest one requested wins.
- ``kind``: account kind; must agree (default ``StorageV2``).
- ``access_tier``: ``Hot`` if anyone asks for it, else ``Cool``.
- ``allow_blob_public_access``: most restrictive setting wins.
- ``static_website``: ``{"index_document", "error404_document"}``; must agree.
- ``containers``: ``[{"name", "public_access"}]`` unioned by name; the same
  container declared with different settings is a conflict.
- ``queues``: queue names, unioned.

Containers are the countable sub-resource (250 per account by default);
overflow buckets become additional accounts. Each queue and the website stay in
every account that is the first account of a component declaring them.
"""

from dataclasses import replace
from typing import Any, Mapping, Sequence

import pulumi
import pulumi_azure_native as azure_native

from backend.merge.strategies import Equal, Maximum, MergePolicy, Minimum, Union
from backend.provider import ProviderContext
from backend.requirements import MergedRequirement, SubResource, ValidationResult
from providers._helpers import container_name_errors, sanitize_storage_account_name
from providers.base import AzureProvider

ID: str = "composer:azure:StorageAccount"

MAX_CONTAINERS_PER_ACCOUNT: int = 250

# Owner identity of the static website setting.
WEBSITE: str = "static_website"

SKU_RANKING: tuple[str, ...] = (
    "Standard_LRS",
    "Standard_GRS",
    "Standard_RAGRS",
    "Standard_ZRS",
    "Premium_LRS",
    "Premium_ZRS",
)

PUBLIC_ACCESS_LEVELS: tuple[str, ...] = ("None", "Blob", "Container")

STORAGE_POLICY = MergePolicy(
    fields={
        "sku": Maximum(ranking=SKU_RANKING),
        "kind": Equal(),
        "access_tier": Maximum(ranking=("Cool", "Hot")),
        "allow_blob_public_access": Minimum(),
        "static_website": Equal(),
        "containers": Union(identity="name"),
        "queues": Union(identity=str),
        "location": Equal(),
    }
)


class StorageAccountResource(pulumi.ComponentResource):
    """
    One storage account bucket and its containers, queues and website.

    Resources: StorageAccount, BlobContainer per container, Queue per queue,
    and optionally StorageAccountStaticWebsite.
    """

    def __init__(
        self,
        name: str,
        config: Mapping[str, Any],
        resource_group_name: pulumi.Input[str],
        location: str,
        tags: Mapping[str, str],
        opts: pulumi.ResourceOptions | None = None,
    ):
        """
        Create the storage account and its children.

        Args:
            name: Pulumi resource name; the account name is sanitized from it.
            config: Merged storage configuration of the bucket.
            resource_group_name: Resource group to deploy into.
            location: Azure region.
            tags: Tags applied to the account.
            opts: Options of the component itself (e.g. its parent).

        Outputs (set on self, registered for the component):
            account_name: Storage account name.
            primary_blob_endpoint: HTTPS base URL of the blob service.
            primary_web_endpoint: Static website URL when hosting is enabled.
        """
        super().__init__(ID, name, None, opts)

        child_opts = pulumi.ResourceOptions(parent=self)

        self.account = azure_native.storage.StorageAccount(
            resource_name=f"{name}-sa",
            resource_group_name=resource_group_name,
            account_name=sanitize_storage_account_name(name),
            location=location,
            sku=azure_native.storage.SkuArgs(name=config.get("sku", "Standard_LRS")),
            kind=config.get("kind", "StorageV2"),
            access_tier=config.get("access_tier", "Hot"),
            enable_https_traffic_only=True,
            minimum_tls_version=azure_native.storage.MinimumTlsVersion.TLS1_2,
            allow_blob_public_access=config.get("allow_blob_public_access", False),
            tags=dict(tags),
            opts=child_opts,
        )

        self.containers: dict[str, azure_native.storage.BlobContainer] = {}
        for container in config.get("containers", []):
            self.containers[container["name"]] = azure_native.storage.BlobContainer(
                resource_name=f"{name}-{container['name']}",
                resource_group_name=resource_group_name,
                account_name=self.account.name,
                container_name=container["name"],
                public_access=container.get("public_access", "None"),
                opts=child_opts,
            )

        self.queues: dict[str, azure_native.storage.Queue] = {}
        for queue in config.get("queues", []):
            self.queues[queue] = azure_native.storage.Queue(
                resource_name=f"{name}-q-{queue}",
                resource_group_name=resource_group_name,
                account_name=self.account.name,
                queue_name=queue,
                opts=child_opts,
            )

        website = config.get("static_website")
        if website:
            azure_native.storage.StorageAccountStaticWebsite(
                resource_name=f"{name}-static",
                resource_group_name=resource_group_name,
                account_name=self.account.name,
                index_document=website.get("index_document", "index.html"),
                error404_document=website.get("error404_document", "404.html"),
                opts=child_opts,
            )

        self.account_name: pulumi.Output[str] = self.account.name
        self.primary_blob_endpoint: pulumi.Output[str] = pulumi.Output.concat(
            "https://",
            self.account.name,
            ".blob.core.windows.net/",
        )
        self.primary_web_endpoint: pulumi.Output[str | None] = self.account.primary_endpoints.apply(
            lambda endpoints: endpoints.web if endpoints and website else None
        )
        self.register_outputs(
            {
                "account_name": self.account_name,
                "primary_blob_endpoint": self.primary_blob_endpoint,
                "primary_web_endpoint": self.primary_web_endpoint,
            }
        )


class StorageProvider(AzureProvider):
    provider_id = "storage-provider"
    supported_types = ("storage",)
    capacity_limit = MAX_CONTAINERS_PER_ACCOUNT
    merge_policy = STORAGE_POLICY

    def sub_resources(self, merged: MergedRequirement) -> Sequence[SubResource]:
        return [
            SubResource(
                identity=container["name"],
                owners=merged.owners_of("containers", container["name"]) or merged.component_ids,
                config=container,
            )
            for container in merged.config.get("containers", [])
        ]

    def merge_requirements(self, members):
        merged = super().merge_requirements(members)
        declarers = tuple(
            dict.fromkeys(
                member.component_id
                for member in sorted(members, key=lambda member: member.order)
                if member.requirement.config.get("static_website")
            )
        )
        if not declarers:
            return merged
        return replace(
            merged,
            owners={**merged.owners, "static_website": {WEBSITE: declarers}},
        )

    def _primary_members(self, merged: MergedRequirement, names: set[str], index: int) -> set[str]:
        """Components whose first bucket is the one holding ``names``."""
        first_container: dict[str, str] = {}
        for item in self.sub_resources(merged):
            for owner in item.owners:
                first_container.setdefault(owner, item.identity)
        return {
            component_id
            for component_id in merged.component_ids
            if (
                first_container[component_id] in names
                if component_id in first_container
                else index == 1
            )
        }

    def bucket_config(self, merged, items, index):
        names = {item.identity for item in items}
        primary = self._primary_members(merged, names, index)
        config = dict(merged.config)
        config["containers"] = [c for c in merged.config.get("containers", []) if c["name"] in names]
        # Queues and the website follow the components that resolve to this account.
        queues = [
            queue
            for queue in merged.config.get("queues", [])
            if primary.intersection(merged.owners_of("queues", queue) or merged.component_ids)
        ]
        if queues:
            config["queues"] = queues
        else:
            config.pop("queues", None)
        if not primary.intersection(merged.owners_of("static_website", WEBSITE)):
            config.pop("static_website", None)
        return config

    def validate_merged(self, merged: MergedRequirement) -> ValidationResult:
        config = merged.config
        errors: list[str] = []
        warnings: list[str] = []

        containers = config.get("containers", [])
        if len(containers) > MAX_CONTAINERS_PER_ACCOUNT:
            errors.append(
                f"Configuration specifies {len(containers)} containers, "
                f"exceeding limit of {MAX_CONTAINERS_PER_ACCOUNT}"
            )
        for container in containers:
            errors.extend(container_name_errors(container["name"]))
            access = container.get("public_access", "None")
            if access not in PUBLIC_ACCESS_LEVELS:
                errors.append(
                    f"Container '{container['name']}' has invalid public_access '{access}'"
                )
            elif access != "None" and config.get("allow_blob_public_access") is False:
                errors.append(
                    f"Container '{container['name']}' requests {access} access "
                    "but blob public access is disabled on the account"
                )

        sku = config.get("sku")
        if sku is not None and sku not in SKU_RANKING:
            errors.append(f"Invalid storage SKU '{sku}'")

        if config.get("allow_blob_public_access"):
            warnings.append("Blob public access is enabled. Ensure this is intentional for security.")

        return ValidationResult.from_messages(errors, warnings)

    def create(self, name, requirement, context: ProviderContext, opts):
        return StorageAccountResource(
            name=name,
            config=requirement.config,
            resource_group_name=context.resource_group_name,
            location=self.location(requirement, context),
            tags=self.tags(requirement, context),
            opts=opts,
        )

    def metadata(self, requirement):
        return {
            "containers": [c["name"] for c in requirement.config.get("containers", [])],
            "queues": list(requirement.config.get("queues", [])),
            "static_website": bool(requirement.config.get("static_website")),
        }

    def component_containers(self, merged: MergedRequirement, component_id: str) -> list[str]:
        """Names of the containers ``component_id`` declared in ``merged``."""
        return [
            container["name"]
            for container in merged.config.get("containers", [])
            if component_id in merged.owners_of("containers", container["name"])
        ]
