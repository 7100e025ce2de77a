from importlib import import_module

__all__ = [
    "LeaderboardService",
    "build_leaderboard_service",
    "VerificationClient",
    "DataNodeClient",
    "SnapshotManager",
    "config_validator",
]

_LAZY_EXPORTS = {
    "LeaderboardService": ("services.leaderboard_service", "LeaderboardService"),
    "build_leaderboard_service": ("services.leaderboard_service", "build_leaderboard_service"),
    "VerificationClient": ("services.verifier", "VerificationClient"),
    "DataNodeClient": ("services.data_node", "DataNodeClient"),
    "SnapshotManager": ("services.snapshot_manager", "SnapshotManager"),
    "config_validator": ("services.config_validator", "config_validator"),
}


def __getattr__(name):
    if name not in _LAZY_EXPORTS:
        raise AttributeError(f"module 'services' has no attribute {name!r}")

    module_name, attr_name = _LAZY_EXPORTS[name]
    module = import_module(module_name)
    value = getattr(module, attr_name)
    globals()[name] = value
    return value
