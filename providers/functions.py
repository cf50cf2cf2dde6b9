"""
Azure Functions provider: host storage + App Service plan + Function App.

Requirements of type ``functions`` sharing a key become one Function App.
Configuration fields:

- ``runtime`` (required): worker runtime; must agree.
- ``version``: runtime version; the highest one wins.
- ``sku``: plan SKU; the highest tier wins (``Y1`` < ``EP1`` < ... < ``P3V3``).
- ``always_on``: enabled if anyone enables it.
- ``app_settings``: mapping unioned by key; the same key with a different
  value is a conflict. Use ``namespace_setting`` to keep keys apart.
- ``extensions``, ``cors_origins``: unioned.
- ``functions``: ``[{"name", ...}]`` unioned by name.

Functions are the countable sub-resource (200 per app by default); overflow
buckets become additional apps carrying the same settings.
"""

import re
from typing import Any, Mapping, Sequence

import pulumi
import pulumi_azure_native as azure_native

from backend.merge.strategies import Equal, Maximum, MergePolicy, Union
from backend.provider import ProviderContext
from backend.requirements import MergedRequirement, SubResource, ValidationResult
from providers._helpers import namespace_setting, sanitize_storage_account_name
from providers.base import AzureProvider

__all__ = ["FunctionsProvider", "FunctionAppResource", "namespace_setting"]

ID: str = "composer:azure:FunctionApp"

MAX_FUNCTIONS_PER_APP: int = 200
MAX_APP_SETTINGS: int = 1000

RUNTIMES: dict[str, str] = {
    "node": "Node",
    "python": "Python",
    "dotnet": "DOTNET-ISOLATED",
    "java": "Java",
    "powershell": "PowerShell",
}

SKU_RANKING: tuple[str, ...] = (
    "Y1",
    "EP1",
    "EP2",
    "EP3",
    "P1V2",
    "P2V2",
    "P3V2",
    "P1V3",
    "P2V3",
    "P3V3",
)

# Settings the provider writes itself; components may not set them.
RESERVED_SETTINGS: tuple[str, ...] = (
    "FUNCTIONS_EXTENSION_VERSION",
    "FUNCTIONS_WORKER_RUNTIME",
    "AzureWebJobsStorage__accountName",
)

_VERSION = re.compile(r"^\d+(\.\d+)*$")


def version_key(version: str) -> tuple[int, ...]:
    """Sort key of a dotted version ("3.11" -> (3, 11))."""
    return tuple(int(part) for part in str(version).split("."))


def sku_tier(sku: str) -> str:
    if sku == "Y1":
        return "Dynamic"
    if sku.startswith("EP"):
        return "ElasticPremium"
    if sku.endswith("V3"):
        return "PremiumV3"
    return "PremiumV2"


FUNCTIONS_POLICY = MergePolicy(
    fields={
        "runtime": Equal(),
        "version": Maximum(key=version_key),
        "sku": Maximum(ranking=SKU_RANKING),
        "always_on": Maximum(),
        "app_settings": Union(),
        "extensions": Union(),
        "cors_origins": Union(),
        "functions": Union(identity="name"),
        "location": Equal(),
    }
)


class FunctionAppResource(pulumi.ComponentResource):
    """
    One Function App bucket.

    Resources: StorageAccount (host storage), AppServicePlan, WebApp with a
    system-assigned identity.
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
        Create the host storage, plan and app.

        Outputs (set on self, registered for the component):
            app_name: Function App name.
            default_host_name: Host name of the app.
            url: HTTPS base URL of the app.
        """
        super().__init__(ID, name, None, opts)

        child_opts = pulumi.ResourceOptions(parent=self)
        web = azure_native.web
        runtime = config["runtime"]
        sku = config.get("sku", "Y1")

        # The Functions host keeps triggers and keys in its own storage account.
        self.storage = azure_native.storage.StorageAccount(
            resource_name=f"{name}-host",
            resource_group_name=resource_group_name,
            account_name=sanitize_storage_account_name(f"{name}-host"),
            location=location,
            sku=azure_native.storage.SkuArgs(name=azure_native.storage.SkuName.STANDARD_LRS),
            kind=azure_native.storage.Kind.STORAGE_V2,
            enable_https_traffic_only=True,
            minimum_tls_version=azure_native.storage.MinimumTlsVersion.TLS1_2,
            allow_blob_public_access=False,
            tags=dict(tags),
            opts=child_opts,
        )

        self.plan = web.AppServicePlan(
            resource_name=f"{name}-plan",
            resource_group_name=resource_group_name,
            name=f"{name}-plan",
            location=location,
            kind="functionapp",
            reserved=True,
            sku=web.SkuDescriptionArgs(name=sku, tier=sku_tier(sku)),
            tags=dict(tags),
            opts=child_opts,
        )

        settings = [
            web.NameValuePairArgs(name="FUNCTIONS_EXTENSION_VERSION", value="~4"),
            web.NameValuePairArgs(name="FUNCTIONS_WORKER_RUNTIME", value=runtime),
            web.NameValuePairArgs(name="AzureWebJobsStorage__accountName", value=self.storage.name),
        ]
        settings += [
            web.NameValuePairArgs(name=key, value=str(value))
            for key, value in config.get("app_settings", {}).items()
        ]
        cors = list(config.get("cors_origins", []))
        fx_version = RUNTIMES.get(runtime, runtime)
        if config.get("version"):
            fx_version = f"{fx_version}|{config['version']}"

        self.app = web.WebApp(
            resource_name=f"{name}-app",
            resource_group_name=resource_group_name,
            name=name,
            location=location,
            kind="functionapp,linux",
            server_farm_id=self.plan.id,
            https_only=True,
            identity=web.ManagedServiceIdentityArgs(
                type=web.ManagedServiceIdentityType.SYSTEM_ASSIGNED,
            ),
            site_config=web.SiteConfigArgs(
                app_settings=settings,
                linux_fx_version=fx_version,
                always_on=bool(config.get("always_on")),
                cors=web.CorsSettingsArgs(allowed_origins=cors) if cors else None,
            ),
            tags=dict(tags),
            opts=child_opts,
        )

        self.app_name: pulumi.Output[str] = self.app.name
        self.default_host_name: pulumi.Output[str] = self.app.default_host_name
        self.url: pulumi.Output[str] = pulumi.Output.concat("https://", self.app.default_host_name)
        self.register_outputs(
            {
                "app_name": self.app_name,
                "default_host_name": self.default_host_name,
                "url": self.url,
            }
        )


class FunctionsProvider(AzureProvider):
    provider_id = "functions-provider"
    supported_types = ("functions",)
    capacity_limit = MAX_FUNCTIONS_PER_APP
    merge_policy = FUNCTIONS_POLICY

    def sub_resources(self, merged: MergedRequirement) -> Sequence[SubResource]:
        return [
            SubResource(
                identity=function["name"],
                owners=merged.owners_of("functions", function["name"]) or merged.component_ids,
                config=function,
            )
            for function in merged.config.get("functions", [])
        ]

    def bucket_config(self, merged, items, index):
        names = {item.identity for item in items}
        return {
            **merged.config,
            "functions": [f for f in merged.config.get("functions", []) if f["name"] in names],
        }

    def validate_merged(self, merged: MergedRequirement) -> ValidationResult:
        config = merged.config
        errors: list[str] = []
        warnings: list[str] = []

        runtime = config.get("runtime")
        if runtime not in RUNTIMES:
            errors.append(f"Invalid runtime '{runtime}'. Must be one of: {', '.join(RUNTIMES)}")

        version = config.get("version")
        if version is not None and not _VERSION.match(str(version)):
            errors.append(f"Invalid version format '{version}'. Expected format: X.Y.Z")

        sku = config.get("sku")
        if sku is not None and sku not in SKU_RANKING:
            errors.append(f"Invalid Function App SKU '{sku}'")

        settings = config.get("app_settings", {})
        if len(settings) + len(RESERVED_SETTINGS) > MAX_APP_SETTINGS:
            errors.append(
                f"Configuration specifies {len(settings)} app settings, "
                f"exceeding limit of {MAX_APP_SETTINGS - len(RESERVED_SETTINGS)}"
            )
        for key in settings:
            if key in RESERVED_SETTINGS:
                errors.append(f"App setting '{key}' is managed by the provider")

        if sku == "Y1" and config.get("always_on"):
            warnings.append("always_on is not available on Consumption plan (Y1)")

        return ValidationResult.from_messages(errors, warnings)

    def create(self, name, requirement, context: ProviderContext, opts):
        return FunctionAppResource(
            name=name,
            config=requirement.config,
            resource_group_name=context.resource_group_name,
            location=self.location(requirement, context),
            tags=self.tags(requirement, context),
            opts=opts,
        )

    def metadata(self, requirement):
        return {
            "functions": [f["name"] for f in requirement.config.get("functions", [])],
            "app_settings": list(requirement.config.get("app_settings", {})),
        }
