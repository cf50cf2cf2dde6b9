"""Tests for stack configuration parsing"""

import pytest

from config import StackConfig


class FakeConfig:
    """Stands in for pulumi.Config with plain values."""

    def __init__(self, values):
        self.values = values

    def require(self, key):
        if key not in self.values:
            raise KeyError(key)
        return self.values[key]

    def get(self, key):
        value = self.values.get(key)
        return None if value is None else str(value)

    def get_object(self, key):
        return self.values.get(key)


REQUIRED = {"project_name": "shop", "environment": "prod", "location": "westeurope"}


class TestStackConfig:
    def test_required_only(self):
        config = StackConfig.from_pulumi_config(FakeConfig(REQUIRED))
        assert config.backend_id == "shop-prod"
        assert config.resource_group_name == "shop-prod-rg"
        assert config.max_splits is None
        assert config.tags == {}
        assert config.capacity_limits == {}

    def test_missing_required_key(self):
        with pytest.raises(KeyError):
            StackConfig.from_pulumi_config(FakeConfig({"project_name": "shop"}))

    def test_optional_values_are_parsed(self):
        config = StackConfig.from_pulumi_config(
            FakeConfig(
                {
                    **REQUIRED,
                    "max_splits": 4,
                    "tags": {"team": "web", "tier": 1},
                    "capacity_limits": {"storage": "100", "cosmos:shared-database": 50},
                }
            )
        )
        assert config.max_splits == 4
        assert config.tags == {"team": "web", "tier": "1"}
        assert config.capacity_limits == {"storage": 100, "cosmos:shared-database": 50}


class TestBackendConfig:
    def test_carries_stack_settings(self):
        stack = StackConfig("shop", "prod", "westeurope", max_splits=2, tags={"team": "web"})
        config = stack.backend_config("shop-rg")
        assert config.tags == {"project": "shop", "team": "web"}
        assert (config.environment, config.location) == ("prod", "westeurope")
        assert config.resource_group_name == "shop-rg"
        assert config.max_splits == 2
        assert config.providers == ()

    def test_keeps_default_max_splits(self):
        config = StackConfig("shop", "dev", "eastus").backend_config()
        assert config.max_splits == 10
