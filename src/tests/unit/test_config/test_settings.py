"""Tests for application settings."""

from pathlib import Path

import pytest

from hybrid_search.config.settings import (
    RankingWeights,
    SearchConfig,
    Settings,
    load_settings,
)
from hybrid_search.exceptions import ConfigurationError


@pytest.mark.unit
class TestLoadSettings:
    def test_defaults(self):
        settings = load_settings()

        weights = settings.search.weights
        assert (weights.keyword, weights.semantic, weights.recency, weights.popularity) == (
            0.4,
            0.2,
            0.2,
            0.2,
        )
        assert settings.search.suggestion_threshold == 3
        assert settings.suggestions.cleanup_days == 90
        assert settings.suggestions.min_frequency == 5

    def test_nested_overrides(self):
        settings = load_settings(
            {
                "search": {"suggestion_threshold": 5, "cache_enabled": False},
                "semantic": {"base_url": "http://vectors:8080", "timeout": 2.5},
            }
        )

        assert settings.search.suggestion_threshold == 5
        assert settings.search.cache_enabled is False
        assert settings.semantic.base_url == "http://vectors:8080"
        assert settings.semantic.timeout == 2.5

    def test_weights_not_summing_to_one_fail_at_startup(self):
        with pytest.raises(ConfigurationError) as exc_info:
            load_settings(
                {
                    "search": {
                        "weights": {
                            "keyword": 0.5,
                            "semantic": 0.5,
                            "recency": 0.5,
                            "popularity": 0.5,
                        }
                    }
                }
            )

        assert exc_info.value.code == "configuration_error"
        assert any("sum to 1.0" in msg for msg in exc_info.value.details["errors"])

    def test_weights_within_tolerance_accepted(self):
        weights = RankingWeights(keyword=0.405, semantic=0.2, recency=0.2, popularity=0.2)

        assert weights.keyword == 0.405

    def test_out_of_range_value_rejected(self):
        with pytest.raises(ConfigurationError):
            load_settings({"keyword_index": {"query_timeout": 0}})

    def test_environment_overrides(self, monkeypatch):
        monkeypatch.setenv("SEARCH_SUGGESTION_THRESHOLD", "7")
        monkeypatch.setenv("SEMANTIC_ENABLED", "false")

        assert SearchConfig().suggestion_threshold == 7
        assert load_settings().semantic.enabled is False


@pytest.mark.unit
class TestSettingsPaths:
    def test_relative_paths_live_under_data_dir(self):
        settings = Settings(data_dir="/var/lib/search")

        assert settings.get_database_path() == Path("/var/lib/search/hybrid_search.db")
        assert settings.get_index_path() == Path("/var/lib/search/keyword_index")

    def test_absolute_paths_are_kept(self):
        settings = Settings(
            data_dir="/data",
            database={"path": "/tmp/q.db"},
            keyword_index={"index_directory": "/tmp/idx"},
        )

        assert settings.get_database_path() == Path("/tmp/q.db")
        assert settings.get_index_path() == Path("/tmp/idx")

    def test_log_file_optional(self):
        assert Settings().get_log_file_path() is None
        assert Settings(logging={"file_path": "logs/search.log"}).get_log_file_path() == Path(
            "logs/search.log"
        )
