"""
Azure Cosmos DB provider: database account + SQL databases + containers.

Requirements of type ``cosmos`` sharing a key become one database account.
Configuration fields (all optional):

- ``databases``: ``[{"name", "throughput", "containers"}]`` unioned by name;
  ``containers`` are ``[{"name", "partition_key", "unique_keys",
  "default_ttl", "throughput", "indexing_policy"}]`` unioned by name within
  their database. A container's partition key must agree, unique keys are
  unioned, the shortest TTL and the highest throughput win.
- ``consistency``, ``serverless``, ``kind``: must agree.
- ``multi_region``, ``free_tier``: enabled if anyone enables them.
- ``public_network_access``: most restrictive setting wins.
- ``capabilities``, ``additional_locations``: unioned.
- ``ip_rules``: intersected (only ranges everyone allows).

Containers are the countable sub-resource (100 per account by default).
"""

from typing import Any, Mapping, Sequence

import pulumi
import pulumi_azure_native as azure_native

from backend.merge.strategies import (
    Equal,
    Intersection,
    Maximum,
    MergePolicy,
    Minimum,
    Priority,
    Union,
)
from backend.provider import ProviderContext
from backend.requirements import MergedRequirement, SubResource, ValidationResult
from providers._helpers import sanitize_cosmos_account_name
from providers.base import AzureProvider

ID: str = "composer:azure:CosmosAccount"

MAX_DATABASES_PER_ACCOUNT: int = 25
MAX_CONTAINERS_PER_ACCOUNT: int = 100

CONSISTENCY_LEVELS: tuple[str, ...] = (
    "Eventual",
    "ConsistentPrefix",
    "Session",
    "BoundedStaleness",
    "Strong",
)

CONTAINER_POLICY = MergePolicy(
    fields={
        "partition_key": Equal(),
        "unique_keys": Union(),
        "default_ttl": Minimum(),
        "throughput": Maximum(),
        "indexing_policy": Priority(),
    }
)

DATABASE_POLICY = MergePolicy(
    fields={
        "throughput": Maximum(),
        "containers": Union(identity="name", entries=CONTAINER_POLICY),
    }
)

COSMOS_POLICY = MergePolicy(
    fields={
        "databases": Union(identity="name", entries=DATABASE_POLICY),
        "consistency": Equal(),
        "serverless": Equal(),
        "kind": Equal(),
        "location": Equal(),
        "multi_region": Maximum(),
        "free_tier": Maximum(),
        "public_network_access": Maximum(ranking=("Enabled", "SecuredByPerimeter", "Disabled")),
        "capabilities": Union(),
        "additional_locations": Union(),
        "ip_rules": Intersection(),
    }
)


def _containers_path(database: str) -> str:
    return f"databases[{database}].containers"


class CosmosAccountResource(pulumi.ComponentResource):
    """
    One Cosmos DB account bucket.

    Resources: DatabaseAccount, SqlResourceSqlDatabase per database and
    SqlResourceSqlContainer per container.
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
        super().__init__(ID, name, None, opts)

        child_opts = pulumi.ResourceOptions(parent=self)
        cosmosdb = azure_native.cosmosdb
        serverless = bool(config.get("serverless"))

        locations = [cosmosdb.LocationArgs(location_name=location, failover_priority=0)]
        locations += [
            cosmosdb.LocationArgs(location_name=extra, failover_priority=priority)
            for priority, extra in enumerate(config.get("additional_locations", []), start=1)
        ]
        capabilities = list(config.get("capabilities", []))
        if serverless and "EnableServerless" not in capabilities:
            capabilities.append("EnableServerless")

        self.account = cosmosdb.DatabaseAccount(
            resource_name=f"{name}-account",
            resource_group_name=resource_group_name,
            account_name=sanitize_cosmos_account_name(name),
            location=location,
            kind=config.get("kind", "GlobalDocumentDB"),
            database_account_offer_type=cosmosdb.DatabaseAccountOfferType.STANDARD,
            locations=locations,
            consistency_policy=cosmosdb.ConsistencyPolicyArgs(
                default_consistency_level=config.get("consistency", "Session"),
            ),
            capabilities=[cosmosdb.CapabilityArgs(name=c) for c in capabilities],
            enable_free_tier=bool(config.get("free_tier")),
            enable_multiple_write_locations=bool(config.get("multi_region")),
            public_network_access=config.get("public_network_access", "Enabled"),
            ip_rules=[
                cosmosdb.IpAddressOrRangeArgs(ip_address_or_range=rule)
                for rule in config.get("ip_rules", [])
            ],
            tags=dict(tags),
            opts=child_opts,
        )

        self.databases: dict[str, cosmosdb.SqlResourceSqlDatabase] = {}
        self.containers: dict[str, cosmosdb.SqlResourceSqlContainer] = {}
        for database in config.get("databases", []):
            db_name = database["name"]
            self.databases[db_name] = cosmosdb.SqlResourceSqlDatabase(
                resource_name=f"{name}-{db_name}",
                resource_group_name=resource_group_name,
                account_name=self.account.name,
                database_name=db_name,
                resource=cosmosdb.SqlDatabaseResourceArgs(id=db_name),
                options=_throughput_options(database, serverless),
                opts=child_opts,
            )
            for container in database.get("containers", []):
                unique_keys = container.get("unique_keys", [])
                self.containers[f"{db_name}/{container['name']}"] = cosmosdb.SqlResourceSqlContainer(
                    resource_name=f"{name}-{db_name}-{container['name']}",
                    resource_group_name=resource_group_name,
                    account_name=self.account.name,
                    database_name=self.databases[db_name].name,
                    container_name=container["name"],
                    resource=cosmosdb.SqlContainerResourceArgs(
                        id=container["name"],
                        partition_key=cosmosdb.ContainerPartitionKeyArgs(
                            paths=[container.get("partition_key", "/id")],
                            kind="Hash",
                        ),
                        default_ttl=container.get("default_ttl"),
                        unique_key_policy=cosmosdb.UniqueKeyPolicyArgs(
                            unique_keys=[cosmosdb.UniqueKeyArgs(paths=[key]) for key in unique_keys],
                        )
                        if unique_keys
                        else None,
                        indexing_policy=container.get("indexing_policy"),
                    ),
                    options=_throughput_options(container, serverless),
                    opts=child_opts,
                )

        self.account_name: pulumi.Output[str] = self.account.name
        self.endpoint: pulumi.Output[str] = self.account.document_endpoint
        self.register_outputs(
            {
                "account_name": self.account_name,
                "endpoint": self.endpoint,
                "databases": list(self.databases),
            }
        )


def _throughput_options(item: Mapping[str, Any], serverless: bool):
    # Serverless accounts reject provisioned throughput.
    if serverless or not item.get("throughput"):
        return None
    return azure_native.cosmosdb.CreateUpdateOptionsArgs(throughput=item["throughput"])


class CosmosProvider(AzureProvider):
    provider_id = "cosmos-provider"
    supported_types = ("cosmos",)
    capacity_limit = MAX_CONTAINERS_PER_ACCOUNT
    merge_policy = COSMOS_POLICY

    def sub_resources(self, merged: MergedRequirement) -> Sequence[SubResource]:
        items = []
        for database in merged.config.get("databases", []):
            db_name = database["name"]
            for container in database.get("containers", []):
                owners = (
                    merged.owners_of(_containers_path(db_name), container["name"])
                    or merged.owners_of("databases", db_name)
                    or merged.component_ids
                )
                items.append(
                    SubResource(
                        identity=f"{db_name}/{container['name']}",
                        owners=owners,
                        config=container,
                        parent=db_name,
                    )
                )
        return items

    def bucket_config(self, merged, items, index):
        wanted: dict[str, set[str]] = {}
        for item in items:
            wanted.setdefault(item.parent, set()).add(item.config["name"])
        databases = []
        for database in merged.config.get("databases", []):
            names = wanted.get(database["name"])
            if names is None:
                # Databases without containers stay with the first account.
                if index == 1 and not database.get("containers"):
                    databases.append(database)
                continue
            databases.append(
                {
                    **database,
                    "containers": [c for c in database.get("containers", []) if c["name"] in names],
                }
            )
        return {**merged.config, "databases": databases}

    def validate_merged(self, merged: MergedRequirement) -> ValidationResult:
        config = merged.config
        errors: list[str] = []
        warnings: list[str] = []

        if config.get("serverless"):
            if config.get("multi_region"):
                errors.append("Serverless accounts do not support multi-region configuration")
            if config.get("free_tier"):
                warnings.append("Free tier is not applicable to serverless accounts")
        elif config.get("free_tier"):
            warnings.append("Azure allows only one free-tier Cosmos DB account per subscription")

        consistency = config.get("consistency")
        if consistency is not None and consistency not in CONSISTENCY_LEVELS:
            errors.append(
                f"Invalid consistency '{consistency}'. Must be one of: {', '.join(CONSISTENCY_LEVELS)}"
            )

        databases = config.get("databases", [])
        if len(databases) > MAX_DATABASES_PER_ACCOUNT:
            errors.append(
                f"Configuration specifies {len(databases)} databases, "
                f"exceeding limit of {MAX_DATABASES_PER_ACCOUNT}"
            )
        for database in databases:
            for container in database.get("containers", []):
                partition_key = container.get("partition_key")
                if not partition_key:
                    errors.append(
                        f"Container '{container['name']}' in database '{database['name']}' "
                        "must specify a partition key"
                    )
                elif not partition_key.startswith("/"):
                    errors.append(
                        f"Partition key '{partition_key}' for container "
                        f"'{container['name']}' must start with '/'"
                    )

        return ValidationResult.from_messages(errors, warnings)

    def create(self, name, requirement, context: ProviderContext, opts):
        return CosmosAccountResource(
            name=name,
            config=requirement.config,
            resource_group_name=context.resource_group_name,
            location=self.location(requirement, context),
            tags=self.tags(requirement, context),
            opts=opts,
        )

    def metadata(self, requirement):
        return {
            "databases": {
                database["name"]: [c["name"] for c in database.get("containers", [])]
                for database in requirement.config.get("databases", [])
            },
        }

    def component_containers(self, merged: MergedRequirement, component_id: str) -> list[str]:
        """``database/container`` names declared by ``component_id`` in ``merged``."""
        return [
            item.identity for item in self.sub_resources(merged) if component_id in item.owners
        ]
