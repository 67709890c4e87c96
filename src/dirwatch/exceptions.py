"""Custom exceptions for the dirwatch package."""


class WatcherError(Exception):
    """Base exception for all watcher errors."""
    pass


class WatchServiceError(WatcherError):
    """The underlying watch service could not be created or used."""
    pass


class WatchServiceClosedError(WatchServiceError):
    """The watch service has been closed."""
    pass


class InvalidConfigError(WatcherError, ValueError):
    """A watch configuration failed validation."""
    pass


class WatcherNotRunningError(WatcherError):
    """Watcher has been closed."""
    pass
