"""
Pure helpers for Azure naming and settings. Testable without Pulumi runtime.

Used by the providers (sanitize_storage_account_name,
sanitize_cosmos_account_name, container_name_errors, namespace_setting) and
the components (endpoint_host). No Pulumi types; all
functions accept and return plain Python types so they can be unit-tested
without a Pulumi stack.
"""

import hashlib
import re

_CONTAINER_NAME = re.compile(r"^[a-z0-9-]+$")


def sanitize_storage_account_name(
    prefix: str,
    max_len: int = 24,
) -> str:
    """
    Produce an Azure-compliant storage account name from a prefix.

    Azure storage account names must be globally unique, 3-24 characters,
    lowercase alphanumeric only. This function strips every other character,
    truncates to reserve space for a short digest of the full prefix and an
    "sa" suffix, so long prefixes that only differ at the end stay distinct.

    Args:
        prefix: Base name (e.g. from the naming convention).
        max_len: Maximum length (default 24 per Azure).

    Returns:
        Sanitized name ending with "sa" (e.g. "shopdevstorage1a2b3csa").
    """
    digest = hashlib.sha1(prefix.encode("utf-8")).hexdigest()[:6]
    cleaned = re.sub(r"[^a-z0-9]", "", prefix.lower())[: max_len - len(digest) - 2]
    return f"{cleaned}{digest}sa"


def sanitize_cosmos_account_name(
    name: str,
    max_len: int = 44,
) -> str:
    """
    Produce an Azure-compliant Cosmos DB account name.

    Account names are globally unique, 3-44 characters of lowercase letters,
    digits and hyphens. Names that fit are kept readable; longer ones are cut
    and end with a short digest of the full name, so overflow accounts whose
    names only differ in their "-2" suffix stay distinct.

    Example:
        sanitize_cosmos_account_name("shop-cosmos-db") -> "shop-cosmos-db"
    """
    cleaned = re.sub(r"[^a-z0-9-]+", "-", name.lower()).strip("-")
    if len(cleaned) <= max_len:
        return cleaned
    digest = hashlib.sha1(name.encode("utf-8")).hexdigest()[:6]
    return f"{cleaned[: max_len - len(digest) - 1].rstrip('-')}-{digest}"


def container_name_errors(
    name: str,
) -> list[str]:
    """
    Return the Azure blob container naming rules ``name`` breaks.

    Container names are 3-63 characters of lowercase letters, digits and
    hyphens, and neither start/end with nor repeat a hyphen.
    """
    errors = []
    if not 3 <= len(name) <= 63:
        errors.append(f"Container name '{name}' must be 3-63 characters long")
    if not _CONTAINER_NAME.match(name):
        errors.append(
            f"Container name '{name}' must contain only lowercase letters, numbers, and hyphens"
        )
    if name.startswith("-") or name.endswith("-"):
        errors.append(f"Container name '{name}' cannot start or end with a hyphen")
    if "--" in name:
        errors.append(f"Container name '{name}' cannot contain consecutive hyphens")
    return errors


def namespace_setting(
    component_id: str,
    key: str,
) -> str:
    """
    Prefix an app setting with the owning component, in UPPER_SNAKE_CASE.

    Components sharing a Function App namespace their settings so the union
    of everyone's settings has no accidental collisions. The reserved id
    "shared" leaves the key unchanged.

    Example:
        namespace_setting("UserApi", "DATABASE") -> "USER_API_DATABASE"
    """
    if component_id == "shared":
        return key
    prefix = re.sub(r"(?<=[a-z0-9])(?=[A-Z])", "_", component_id)
    prefix = re.sub(r"[^A-Za-z0-9]+", "_", prefix).strip("_").upper()
    return f"{prefix}_{key}"


def endpoint_host(
    url: str,
) -> str:
    """Host part of an endpoint URL ("https://a.web.core.windows.net/" -> "a.web.core.windows.net")."""
    return url.split("://", 1)[-1].split("/", 1)[0]
