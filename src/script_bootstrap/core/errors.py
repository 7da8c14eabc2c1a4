from __future__ import annotations


class BootstrapError(Exception):
    """Base class for every failure the supervisor knows how to classify."""


class NetworkError(BootstrapError):
    """Manifest or file download failed."""


class ParseError(BootstrapError):
    """Malformed manifest or persisted document."""


class StorageError(BootstrapError):
    """Local read or write failed."""


class LaunchError(BootstrapError):
    """The launched script terminated abnormally."""


class SupervisorFault(BootstrapError):
    """Unexpected fault inside the supervisor's own control logic."""


class ConfigError(BootstrapError):
    pass
