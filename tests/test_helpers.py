"""Tests for pure helpers"""

from providers import _helpers


class TestSanitizeStorageAccountName:
    def test_strips_hyphens_and_appends_sa(self):
        result = _helpers.sanitize_storage_account_name("azure-dev")
        assert result.startswith("azuredev")
        assert result.endswith("sa")

    def test_respects_max_len(self):
        long_prefix = "a" * 30
        result = _helpers.sanitize_storage_account_name(long_prefix, max_len=24)
        assert len(result) == 24
        assert result.endswith("sa")

    def test_short_prefix_meets_minimum_length(self):
        assert len(_helpers.sanitize_storage_account_name("az")) >= 3

    def test_only_lowercase_alphanumerics(self):
        result = _helpers.sanitize_storage_account_name("Shop_Dev-Storage.Site")
        assert result.isalnum()
        assert result == result.lower()

    def test_long_prefixes_differing_at_the_end_stay_distinct(self):
        first = _helpers.sanitize_storage_account_name("shop-dev-storage-assets")
        second = _helpers.sanitize_storage_account_name("shop-dev-storage-assets-2")
        assert first != second

    def test_is_deterministic(self):
        assert _helpers.sanitize_storage_account_name("shop") == _helpers.sanitize_storage_account_name("shop")


class TestContainerNameErrors:
    def test_valid_name(self):
        assert _helpers.container_name_errors("logs") == []

    def test_too_short(self):
        assert _helpers.container_name_errors("ab") == ["Container name 'ab' must be 3-63 characters long"]

    def test_uppercase_rejected(self):
        errors = _helpers.container_name_errors("Logs")
        assert any("lowercase" in error for error in errors)

    def test_hyphen_rules(self):
        assert any("start or end" in e for e in _helpers.container_name_errors("-logs"))
        assert any("consecutive" in e for e in _helpers.container_name_errors("app--logs"))


class TestNamespaceSetting:
    def test_camel_case_component(self):
        assert _helpers.namespace_setting("UserApi", "DATABASE") == "USER_API_DATABASE"

    def test_hyphenated_component(self):
        assert _helpers.namespace_setting("product-api", "CONTAINER") == "PRODUCT_API_CONTAINER"

    def test_shared_leaves_key_unchanged(self):
        assert _helpers.namespace_setting("shared", "LOG_LEVEL") == "LOG_LEVEL"


class TestEndpointHost:
    def test_strips_scheme_and_path(self):
        assert _helpers.endpoint_host("https://site.z13.web.core.windows.net/") == "site.z13.web.core.windows.net"

    def test_bare_host(self):
        assert _helpers.endpoint_host("example.com") == "example.com"


class TestSanitizeCosmosAccountName:
    def test_short_name_is_kept(self):
        assert _helpers.sanitize_cosmos_account_name("Shop-Cosmos_DB") == "shop-cosmos-db"

    def test_long_names_differing_in_suffix_stay_distinct(self):
        first = _helpers.sanitize_cosmos_account_name("contoso-commerce-platform-prod-cosmos-shared-database")
        second = _helpers.sanitize_cosmos_account_name("contoso-commerce-platform-prod-cosmos-shared-database-2")
        assert first != second
        assert len(first) <= 44 and len(second) <= 44
        assert first.startswith("contoso-commerce-platform")
