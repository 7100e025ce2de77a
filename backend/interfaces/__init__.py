from .data_sources import IdentitySource, PartyDataSource
from .snapshot_store import SnapshotStore

__all__ = ["IdentitySource", "PartyDataSource", "SnapshotStore"]
