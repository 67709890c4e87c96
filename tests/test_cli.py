"""Tests for the command line interface."""

import argparse
from pathlib import Path

import pytest

from dirwatch import cli
from dirwatch.config import RECURSIVE
from dirwatch.exceptions import WatchServiceError
from dirwatch.models import EventType


class ImmediateShutdown:
    """Stand-in for GracefulShutdown that returns straight away."""

    def wait(self):
        pass


class TestParseEventTypes:
    """Tests for parse_event_types."""

    def test_single(self):
        assert cli.parse_event_types("added") == [EventType.ADDED]

    def test_list_with_spaces_and_case(self):
        assert cli.parse_event_types(" Added, REMOVED ,") == [EventType.ADDED, EventType.REMOVED]

    def test_unknown(self):
        with pytest.raises(argparse.ArgumentTypeError):
            cli.parse_event_types("added,renamed")


class TestBuildWatchConfig:
    """Tests for build_parser and build_watch_config."""

    def test_defaults(self):
        args = cli.build_parser().parse_args(["/tmp/watched"])
        config = cli.build_watch_config(args)

        assert config.max_depth == 1
        assert config.filter is None
        assert config.allowed_event_types is None

    def test_recursive(self):
        args = cli.build_parser().parse_args(["/tmp/watched", "--recursive"])
        assert cli.build_watch_config(args).max_depth == RECURSIVE

    def test_max_depth_and_events(self):
        args = cli.build_parser().parse_args(["/tmp/watched", "--max-depth", "3", "--events", "added,modified"])
        config = cli.build_watch_config(args)

        assert config.max_depth == 3
        assert config.allowed_event_types == frozenset({EventType.ADDED, EventType.MODIFIED})

    def test_glob_and_ignore_combined(self):
        args = cli.build_parser().parse_args(
            ["/tmp/watched", "--glob", "*.xml", "--ignore", "draft_*"]
        )
        config = cli.build_watch_config(args)

        assert config.filter(Path("/tmp/watched/a.xml")) is True
        assert config.filter(Path("/tmp/watched/draft_a.xml")) is False
        assert config.filter(Path("/tmp/watched/a.txt")) is False

    def test_max_depth_and_recursive_exclusive(self):
        with pytest.raises(SystemExit):
            cli.build_parser().parse_args(["/tmp/watched", "--max-depth", "2", "--recursive"])

    def test_paths_required(self):
        with pytest.raises(SystemExit):
            cli.build_parser().parse_args([])

    def test_invalid_depth_rejected(self, monkeypatch):
        monkeypatch.setattr(cli, "GracefulShutdown", ImmediateShutdown)
        with pytest.raises(SystemExit):
            cli.main(["/tmp/watched", "--max-depth", "0"])


class TestMain:
    """Tests for main."""

    def test_watcher_start_failure(self, monkeypatch, root_dir):
        def failing_watcher(*args, **kwargs):
            raise WatchServiceError("no watch facility")

        monkeypatch.setattr(cli, "GracefulShutdown", ImmediateShutdown)
        monkeypatch.setattr(cli, "FileSystemWatcher", failing_watcher)

        assert cli.main([str(root_dir)]) == 1

    def test_watch_and_stop(self, monkeypatch, root_dir):
        watched = []

        class RecordingWatcher:
            def __init__(self, name, config=None):
                self.config = config

            def watch(self, path, listener, config=None):
                watched.append((path, config.max_depth))

            def __enter__(self):
                return self

            def __exit__(self, *exc):
                return False

        monkeypatch.setattr(cli, "GracefulShutdown", ImmediateShutdown)
        monkeypatch.setattr(cli, "FileSystemWatcher", RecordingWatcher)

        assert cli.main([str(root_dir), "--max-depth", "2", "--debounce", "10"]) == 0
        assert watched == [(root_dir, 2)]
