"""Tests for CtxConfig."""

from dotctx.config.settings import CtxConfig, DEFAULT_PRIORITY_ORDER, get_default_config


class TestCtxConfig:
    """Test cases for configuration loading and validation."""

    def test_defaults(self):
        """The default config carries the documented values."""
        config = get_default_config()
        assert config.version == 1
        assert config.budget.default == 2000
        assert config.allocation == "priority"
        assert config.priority_order == DEFAULT_PRIORITY_ORDER
        assert config.freshness.stale_threshold == "48h"
        assert config.freshness.file_stale_threshold == "30d"
        assert config.freshness.loop_default_ttl == "14d"
        assert config.freshness.max_sessions == 5
        assert config.validate() == []

    def test_defaults_are_not_shared(self):
        """Each default config is an independent object."""
        first = get_default_config()
        first.budget.adapters["claude"] = 10
        assert get_default_config().budget.adapters == {}

    def test_from_dict_partial(self):
        """Missing keys fall back to defaults."""
        config = CtxConfig.from_dict({
            "budget": {"adapters": {"claude": 3000}},
            "adapters": {"cursor": {"include_bootstrap": False}},
        })
        assert config.budget.default == 2000
        assert config.budget.for_adapter("claude") == 3000
        assert config.budget.for_adapter("copilot") == 2000
        assert config.get_adapter_config("cursor").include_bootstrap is False
        assert config.get_adapter_config("claude") is None

    def test_from_dict_none(self):
        assert CtxConfig.from_dict(None) == get_default_config()

    def test_yaml_round_trip(self, tmp_path):
        """Saving and loading YAML preserves the config."""
        config = CtxConfig.from_dict({"budget": {"default": 1234}, "freshness": {"stale_threshold": "3d"}})
        path = tmp_path / ".ctx" / ".ctxrc"
        config.save_yaml(str(path))
        assert CtxConfig.from_yaml(str(path)) == config

    def test_validate_reports_issues(self):
        """Bad values are reported, not raised."""
        config = CtxConfig.from_dict({
            "budget": {"default": 0},
            "allocation": "weighted",
            "priority_order": ["current", "nonsense"],
            "freshness": {"stale_threshold": "soon", "max_sessions": 0},
        })
        issues = config.validate()
        assert "Default budget must be positive" in issues
        assert any("weighted" in issue for issue in issues)
        assert any("nonsense" in issue for issue in issues)
        assert any("stale_threshold" in issue for issue in issues)
        assert any("max_sessions" in issue for issue in issues)
