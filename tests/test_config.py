"""Tests for config module."""

import pytest
import sys
from pathlib import Path

from dirwatch.config import RECURSIVE, WatchConfig, WatcherConfig
from dirwatch.exceptions import InvalidConfigError
from dirwatch.models import EventType


class TestWatchConfig:
    """Tests for WatchConfig class."""

    def test_default_values(self):
        config = WatchConfig()
        assert config.max_depth == 1
        assert config.filter is None
        assert config.allowed_event_types is None
        assert config.is_recursive is False

    def test_custom_values(self):
        path_filter = lambda p: p.suffix == ".json"
        config = WatchConfig(
            max_depth=3,
            filter=path_filter,
            allowed_event_types={EventType.ADDED},
        )
        assert config.max_depth == 3
        assert config.filter is path_filter
        assert config.allowed_event_types == frozenset({EventType.ADDED})

    def test_allowed_event_types_become_frozenset(self):
        config = WatchConfig(allowed_event_types=[EventType.ADDED, EventType.ADDED])
        assert isinstance(config.allowed_event_types, frozenset)
        assert config.allowed_event_types == frozenset({EventType.ADDED})

    @pytest.mark.parametrize("max_depth", [0, -1])
    def test_non_positive_max_depth_raises(self, max_depth):
        with pytest.raises(InvalidConfigError):
            WatchConfig(max_depth=max_depth)

    @pytest.mark.parametrize("max_depth", ["1", 1.5, True])
    def test_non_integer_max_depth_raises(self, max_depth):
        with pytest.raises(InvalidConfigError):
            WatchConfig(max_depth=max_depth)

    def test_invalid_config_is_value_error(self):
        with pytest.raises(ValueError):
            WatchConfig(max_depth=0)

    def test_non_callable_filter_raises(self):
        with pytest.raises(InvalidConfigError):
            WatchConfig(filter="*.txt")

    def test_unknown_event_type_raises(self):
        with pytest.raises(InvalidConfigError):
            WatchConfig(allowed_event_types={"added"})

    def test_all_events_allowed_by_default(self):
        config = WatchConfig()
        for event_type in EventType:
            assert config.is_event_allowed(event_type) is True
        assert config.is_event_allowed(None) is False

    def test_is_event_allowed_with_restriction(self):
        config = WatchConfig(allowed_event_types={EventType.ADDED, EventType.REMOVED})
        assert config.is_event_allowed(EventType.ADDED) is True
        assert config.is_event_allowed(EventType.REMOVED) is True
        assert config.is_event_allowed(EventType.MODIFIED) is False

    def test_empty_restriction_allows_nothing(self):
        config = WatchConfig(allowed_event_types=set())
        for event_type in EventType:
            assert config.is_event_allowed(event_type) is False

    def test_with_helpers_return_copies(self):
        config = WatchConfig()
        deeper = config.with_max_depth(2)
        filtered = config.with_filter(Path.is_file)
        restricted = config.with_allowed_event_types(EventType.MODIFIED, None)

        assert config == WatchConfig()
        assert deeper.max_depth == 2
        assert filtered.filter is Path.is_file
        assert restricted.allowed_event_types == frozenset({EventType.MODIFIED})

    def test_with_allowed_event_types_without_args_allows_all(self):
        config = WatchConfig(allowed_event_types={EventType.ADDED}).with_allowed_event_types()
        assert config.allowed_event_types is None

    def test_with_max_depth_validates(self):
        with pytest.raises(InvalidConfigError):
            WatchConfig().with_max_depth(0)

    def test_recursive(self):
        config = WatchConfig.recursive()
        assert config.max_depth == RECURSIVE == sys.maxsize
        assert config.is_recursive is True

    def test_configs_compare_by_value(self):
        assert WatchConfig(max_depth=2) == WatchConfig(max_depth=2)
        assert WatchConfig(max_depth=2) != WatchConfig(max_depth=3)


class TestWatcherConfig:
    """Tests for WatcherConfig class."""

    def test_default_values(self):
        config = WatcherConfig()
        assert config.debounce_ms == 100
        assert config.dispatch_workers == 4
        assert config.use_polling is False
        assert config.poll_interval == 1.0
        assert config.max_pending_events == 512
        assert config.shutdown_timeout == 2.0

    def test_custom_values(self):
        config = WatcherConfig(debounce_ms=20, dispatch_workers=1, use_polling=True)
        assert config.debounce_ms == 20
        assert config.dispatch_workers == 1
        assert config.use_polling is True

    def test_from_env_defaults(self, monkeypatch):
        for name in ("DEBOUNCE_MS", "DISPATCH_WORKERS", "USE_POLLING", "POLL_INTERVAL",
                     "MAX_PENDING_EVENTS", "SHUTDOWN_TIMEOUT"):
            monkeypatch.delenv(f"DIRWATCH_{name}", raising=False)

        assert WatcherConfig.from_env() == WatcherConfig()

    def test_from_env(self, monkeypatch):
        monkeypatch.setenv("DIRWATCH_DEBOUNCE_MS", "250")
        monkeypatch.setenv("DIRWATCH_DISPATCH_WORKERS", "2")
        monkeypatch.setenv("DIRWATCH_USE_POLLING", "true")
        monkeypatch.setenv("DIRWATCH_POLL_INTERVAL", "0.5")
        monkeypatch.setenv("DIRWATCH_MAX_PENDING_EVENTS", "64")
        monkeypatch.setenv("DIRWATCH_SHUTDOWN_TIMEOUT", "5")

        config = WatcherConfig.from_env()

        assert config.debounce_ms == 250
        assert config.dispatch_workers == 2
        assert config.use_polling is True
        assert config.poll_interval == 0.5
        assert config.max_pending_events == 64
        assert config.shutdown_timeout == 5.0

    def test_from_env_custom_prefix(self, monkeypatch):
        monkeypatch.setenv("MYAPP_DEBOUNCE_MS", "10")
        monkeypatch.setenv("MYAPP_USE_POLLING", "no")

        config = WatcherConfig.from_env(prefix="MYAPP_")

        assert config.debounce_ms == 10
        assert config.use_polling is False
