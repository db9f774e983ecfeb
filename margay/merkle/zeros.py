"""
Copyright (C) 2026 Garudex Labs.  All Rights Reserved.
Margay, a product of Garudex Labs

Zero table for the incremental Merkle tree.

``Z[i]`` is the root of an empty subtree of height ``i``:

    Z[0] = H(EMPTY_DIGEST, EMPTY_DIGEST)
    Z[i] = H(Z[i-1], Z[i-1])

The SHA-256 table is stored below as constants, computed off-line with the
same recurrence. Tables for other compression functions are derived once on
first use and cached by hash name.
"""

from typing import Dict, Iterator, Sequence, Tuple

from margay.exceptions import UnknownHashFunctionError, ZeroLevelOutOfRangeError
from margay.logging_config import get_logger
from margay.merkle.hashing import (
    EMPTY_DIGEST,
    CompressionFunction,
    Sha256Compression,
    get_hash_function,
)

logger = get_logger(__name__)


MAX_DEPTH = 32

# SHA-256 empty-subtree roots, levels 0..31.
SHA256_ZERO_HEX: Tuple[str, ...] = (
    "f5a5fd42d16a20302798ef6ed309979b43003d2320d9f0e8ea9831a92759fb4b",  # 0
    "db56114e00fdd4c1f85c892bf35ac9a89289aaecb1ebd0a96cde606a748b5d71",  # 1
    "c78009fdf07fc56a11f122370658a353aaa542ed63e44c4bc15ff4cd105ab33c",  # 2
    "536d98837f2dd165a55d5eeae91485954472d56f246df256bf3cae19352a123c",  # 3
    "9efde052aa15429fae05bad4d0b1d7c64da64d03d7a1854a588c2cb8430c0d30",  # 4
    "d88ddfeed400a8755596b21942c1497e114c302e6118290f91e6772976041fa1",  # 5
    "87eb0ddba57e35f6d286673802a4af5975e22506c7cf4c64bb6be5ee11527f2c",  # 6
    "26846476fd5fc54a5d43385167c95144f2643f533cc85bb9d16b782f8d7db193",  # 7
    "506d86582d252405b840018792cad2bf1259f1ef5aa5f887e13cb2f0094f51e1",  # 8
    "ffff0ad7e659772f9534c195c815efc4014ef1e1daed4404c06385d11192e92b",  # 9
    "6cf04127db05441cd833107a52be852868890e4317e6a02ab47683aa75964220",  # 10
    "b7d05f875f140027ef5118a2247bbb84ce8f2f0f1123623085daf7960c329f5f",  # 11
    "df6af5f5bbdb6be9ef8aa618e4bf8073960867171e29676f8b284dea6a08a85e",  # 12
    "b58d900f5e182e3c50ef74969ea16c7726c549757cc23523c369587da7293784",  # 13
    "d49a7502ffcfb0340b1d7885688500ca308161a7f96b62df9d083b71fcc8f2bb",  # 14
    "8fe6b1689256c0d385f42f5bbe2027a22c1996e110ba97c171d3e5948de92beb",  # 15
    "8d0d63c39ebade8509e0ae3c9c3876fb5fa112be18f905ecacfecb92057603ab",  # 16
    "95eec8b2e541cad4e91de38385f2e046619f54496c2382cb6cacd5b98c26f5a4",  # 17
    "f893e908917775b62bff23294dbbe3a1cd8e6cc1c35b4801887b646a6f81f17f",  # 18
    "cddba7b592e3133393c16194fac7431abf2f5485ed711db282183c819e08ebaa",  # 19
    "8a8d7fe3af8caa085a7639a832001457dfb9128a8061142ad0335629ff23ff9c",  # 20
    "feb3c337d7a51a6fbf00b9e34c52e1c9195c969bd4e7a0bfd51d5c5bed9c1167",  # 21
    "e71f0aa83cc32edfbefa9f4d3e0174ca85182eec9f3a09f6a6c0df6377a510d7",  # 22
    "31206fa80a50bb6abe29085058f16212212a60eec8f049fecb92d8c8e0a84bc0",  # 23
    "21352bfecbeddde993839f614c3dac0a3ee37543f9b412b16199dc158e23b544",  # 24
    "619e312724bb6d7c3153ed9de791d764a366b389af13c58bf8a8d90481a46765",  # 25
    "7cdd2986268250628d0c10e385c58c6191e6fbe05191bcc04f133f2cea72c1c4",  # 26
    "848930bd7ba8cac54661072113fb278869e07bb8587f91392933374d017bcbe1",  # 27
    "8869ff2c22b28cc10510d9853292803328be4fb0e80495e8bb8d271f5b889636",  # 28
    "b5fe28e79f1b850f8658246ce9b6a1e7b49fc06db7143e8fe0b4f2b0c5523a5c",  # 29
    "985e929f70af28d0bdd1a90a808f977f597c7c778c489e98d3bd8910d31ac0f7",  # 30
    "c6f67e02e6e4e1bdefb994c6098953f34636ba2b6ca20a4721d2b26a886722ff",  # 31
)

SHA256_ZEROS: Tuple[bytes, ...] = tuple(bytes.fromhex(value) for value in SHA256_ZERO_HEX)


def _check_level(level, size: int) -> None:
    if isinstance(level, bool) or not isinstance(level, int) or not 0 <= level < size:
        raise ZeroLevelOutOfRangeError(level, size)


def zero(level: int) -> bytes:
    """
    Return the SHA-256 empty-subtree root for ``level``.

    Raises:
        ZeroLevelOutOfRangeError: If level is outside [0, MAX_DEPTH)
    """
    _check_level(level, MAX_DEPTH)
    return SHA256_ZEROS[level]


def derive_zero_table(hasher: CompressionFunction, max_depth: int = MAX_DEPTH) -> Tuple[bytes, ...]:
    """
    Compute the zero table for ``hasher`` from the recurrence.

    Args:
        hasher: Compression function to derive the table with
        max_depth: Number of levels to compute

    Returns:
        Tuple of ``max_depth`` digests
    """
    values = []
    current = hasher.hash_pair(EMPTY_DIGEST, EMPTY_DIGEST)
    for _ in range(max_depth):
        values.append(current)
        current = hasher.hash_pair(current, current)
    return tuple(values)


class ZeroTable:
    """
    Bounded lookup of empty-subtree roots for one compression function.

    Example:
        >>> table = zero_table_for(get_hash_function("sha256"))
        >>> table.zero(0) == zero(0)
        True
    """

    def __init__(self, values: Sequence[bytes], hash_function: str):
        self._values = tuple(values)
        self.hash_function = hash_function

    def zero(self, level: int) -> bytes:
        """
        Return the empty-subtree root of height ``level``.

        Raises:
            ZeroLevelOutOfRangeError: If level is outside the table
        """
        _check_level(level, len(self._values))
        return self._values[level]

    def __len__(self) -> int:
        return len(self._values)

    def __iter__(self) -> Iterator[bytes]:
        return iter(self._values)

    def __repr__(self) -> str:
        return f"ZeroTable(hash_function={self.hash_function!r}, levels={len(self._values)})"


SHA256_ZERO_TABLE = ZeroTable(SHA256_ZEROS, Sha256Compression.name)

# hash name -> (hasher instance, derived table)
_TABLE_CACHE: Dict[str, Tuple[CompressionFunction, ZeroTable]] = {}


def zero_table_for(hasher: CompressionFunction) -> ZeroTable:
    """
    Return the zero table matching ``hasher``.

    SHA-256 uses the constant table. Registered functions have their table
    derived once and cached; unregistered (caller-supplied) functions get a
    freshly derived table every time.
    """
    if isinstance(hasher, Sha256Compression):
        return SHA256_ZERO_TABLE

    cached = _TABLE_CACHE.get(hasher.name)
    if cached is not None and cached[0] is hasher:
        return cached[1]

    table = ZeroTable(derive_zero_table(hasher), hasher.name)
    logger.debug(f"Derived zero table for hash function '{hasher.name}'")

    if _is_registered(hasher):
        _TABLE_CACHE[hasher.name] = (hasher, table)
    return table


def _is_registered(hasher: CompressionFunction) -> bool:
    try:
        return get_hash_function(hasher.name) is hasher
    except UnknownHashFunctionError:
        return False
