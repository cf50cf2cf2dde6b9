"""
CRUD API component: a Cosmos DB container served by Azure Functions.

The component never creates the account or the app itself. It declares a
container in a shared Cosmos database and a set of CRUD functions (plus
namespaced settings) on a shared Function App; every CrudApi using the same
requirement keys ends up on the same account and app.
"""

from dataclasses import dataclass
from typing import Any

import pulumi

from backend.definition import BackendComponent
from backend.requirements import ResourceRequirement, ValidationResult
from backend.resource_map import ScopedResources
from providers._helpers import namespace_setting

ID: str = "composer:components:CrudApi"

OPERATIONS: tuple[tuple[str, str], ...] = (
    ("create", "POST"),
    ("read", "GET"),
    ("update", "PUT"),
    ("delete", "DELETE"),
    ("list", "GET"),
)


@dataclass(frozen=True)
class CrudApiConfig:
    """
    Settings of one CRUD API.

    Attributes:
        entity_name: Entity served by the API; also the container name.
        partition_key: Container partition key path.
        database_name: Cosmos database holding the container.
        database_key: Requirement key of the shared Cosmos account.
        functions_key: Requirement key of the shared Function App.
        runtime: Functions worker runtime.
        version: Runtime version.
        default_ttl: Optional container TTL in seconds.
        unique_keys: Unique key paths of the container.
    """

    entity_name: str
    partition_key: str = "/id"
    database_name: str = "shared"
    database_key: str = "shared-database"
    functions_key: str = "api"
    runtime: str = "node"
    version: str = "20"
    default_ttl: int | None = None
    unique_keys: tuple[str, ...] = ()


class CrudApiResource(pulumi.ComponentResource):
    """Groups the outputs of one CRUD API under its own node in the stack."""

    def __init__(
        self,
        name: str,
        entity_name: str,
        cosmos: Any,
        app: Any,
        opts: pulumi.ResourceOptions | None = None,
    ):
        super().__init__(ID, name, None, opts)

        self.cosmos_endpoint: pulumi.Output[str] = cosmos.endpoint
        self.api_url: pulumi.Output[str] = pulumi.Output.concat(
            app.url,
            "/api/",
            entity_name.lower(),
        )
        self.register_outputs(
            {
                "api_url": self.api_url,
                "cosmos_endpoint": self.cosmos_endpoint,
            }
        )


class CrudApi(BackendComponent[CrudApiConfig]):
    component_type = "CrudApi"

    @property
    def route(self) -> str:
        return self.config.entity_name.lower()

    def function_names(self) -> list[str]:
        return [f"{self.route}-{operation}" for operation, _ in OPERATIONS]

    def get_requirements(self) -> list[ResourceRequirement]:
        config = self.config
        container: dict[str, Any] = {
            "name": config.entity_name,
            "partition_key": config.partition_key,
        }
        if config.default_ttl is not None:
            container["default_ttl"] = config.default_ttl
        if config.unique_keys:
            container["unique_keys"] = list(config.unique_keys)

        functions = [
            {
                "name": f"{self.route}-{operation}",
                "route": self.route if operation in ("create", "list") else f"{self.route}/{{id}}",
                "methods": [method],
            }
            for operation, method in OPERATIONS
        ]
        return [
            ResourceRequirement(
                resource_type="cosmos",
                requirement_key=config.database_key,
                config={
                    "databases": [{"name": config.database_name, "containers": [container]}],
                },
            ),
            ResourceRequirement(
                resource_type="functions",
                requirement_key=config.functions_key,
                config={
                    "runtime": config.runtime,
                    "version": config.version,
                    "app_settings": {
                        namespace_setting(self.component_id, "DATABASE"): config.database_name,
                        namespace_setting(self.component_id, "CONTAINER"): config.entity_name,
                    },
                    "functions": functions,
                },
            ),
        ]

    def validate_resources(self, resources: ScopedResources) -> ValidationResult:
        result = super().validate_resources(resources)
        if not result.valid:
            return result
        cosmos = resources.get_resource("cosmos", self.config.database_key)
        databases = cosmos.provider_metadata.get("databases")
        if databases is not None:
            containers = databases.get(self.config.database_name, [])
            if self.config.entity_name not in containers:
                return result.merge(
                    ValidationResult.from_messages(
                        [
                            f"Container '{self.config.entity_name}' is missing from "
                            f"database '{self.config.database_name}' of {cosmos.concrete_key}"
                        ]
                    )
                )
        return result

    def setup(self, resources: ScopedResources, scope: Any) -> None:
        opts = pulumi.ResourceOptions(parent=scope) if isinstance(scope, pulumi.Resource) else None
        self.resource = CrudApiResource(
            name=self.component_id,
            entity_name=self.config.entity_name,
            cosmos=resources.handle("cosmos", self.config.database_key),
            app=resources.handle("functions", self.config.functions_key),
            opts=opts,
        )

    def outputs(self):
        return {
            "api_url": self.resource.api_url,
            "cosmos_endpoint": self.resource.cosmos_endpoint,
            "database": self.config.database_name,
            "container": self.config.entity_name,
        }
