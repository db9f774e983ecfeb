"""
Copyright (C) 2026 Garudex Labs.  All Rights Reserved.
Margay, a product of Garudex Labs

Margay Core - Incremental Merkle Tree with Root History

Margay Core maintains an append-only, fixed-depth Merkle tree in O(depth)
state, remembers a bounded window of recent roots, and notifies observers of
every inserted leaf.
"""

from margay._version import __version__

__all__ = ["__version__"]
