"""Exceptions raised by npmstats."""


class NpmStatsError(Exception):
    """Base class for errors that abort an npmstats run."""


class ConfigError(NpmStatsError):
    """The configuration file or a configured value is invalid."""


class DiscoveryError(NpmStatsError):
    """The registry could not list the packages of a user."""


class IssueTrackerError(NpmStatsError):
    """A report issue could not be read or written."""
