"""Exception hierarchy for the leaderboard service.

Configuration errors are fatal at startup. Dependency and snapshot store
errors are caught at the refresh boundary and never reach readers.
"""


class LeaderboardError(Exception):
    """Base class for all leaderboard errors"""


class ConfigurationError(LeaderboardError):
    """Invalid or incomplete configuration; the service must not start"""


class UnknownStrategyError(ConfigurationError):
    def __init__(self, key: str, available: list[str]):
        self.key = key
        self.available = available
        super().__init__(f"Unknown ranking algorithm '{key}' (available: {', '.join(available)})")


class MissingAlgorithmParameterError(ConfigurationError):
    def __init__(self, key: str, missing: list[str]):
        self.key = key
        self.missing = missing
        super().__init__(f"Algorithm '{key}' requires parameter(s): {', '.join(missing)}")


class DependencyError(LeaderboardError):
    """An external service failed or returned something unusable"""


class VerificationError(DependencyError):
    pass


class DataSourceError(DependencyError):
    pass


class SnapshotStoreError(LeaderboardError):
    """Snapshot persistence failed"""
