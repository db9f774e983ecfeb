"""
Persistence of incremental Merkle tree state.
"""

from margay.storage.state_store import STATE_FORMAT_VERSION, FileStateStore

__all__ = [
    "STATE_FORMAT_VERSION",
    "FileStateStore",
]
