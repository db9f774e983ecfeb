"""
Copyright (C) 2026 Garudex Labs.  All Rights Reserved.
Margay, a product of Garudex Labs

File-based persistence for incremental Merkle tree state.

Only the mutable tree state is stored: depth, history size, hash function
name, the filled-subtree cache, the next index, the history cursor and the
root history. Zero values are recomputed from the hash function on restore.

Writers serialize through an exclusive lock on a sibling ``.lock`` file, so a
load-modify-save cycle held under ``lock()`` is safe across processes.
"""

import fcntl
import json
import os
import shutil
import tempfile
import time
from contextlib import contextmanager
from pathlib import Path
from typing import Any, Dict, Iterator

from margay.exceptions import InvalidTreeStateError, StateReadError, StateWriteError
from margay.logging_config import get_logger, log_state_persisted
from margay.merkle.tree import TreeState

logger = get_logger(__name__)


STATE_FORMAT_VERSION = 1


class FileStateStore:
    """
    Stores TreeState as JSON with atomic writes and rolling backups.

    Example:
        >>> store = FileStateStore("~/.margay/tree_state.json")
        >>> with store.lock():
        ...     tree = IncrementalMerkleTree.from_state(store.load())
        ...     tree.insert(42)
        ...     store.save(tree.export_state())
    """

    def __init__(self, path: str, backup_count: int = 3):
        """
        Initialize state store.

        Args:
            path: Path to the JSON state file
            backup_count: Number of rolling backups to keep (default: 3)
        """
        self.path = Path(path).expanduser()
        self.backup_count = backup_count

    @property
    def lock_path(self) -> Path:
        return Path(f"{self.path}.lock")

    def exists(self) -> bool:
        return self.path.exists()

    @contextmanager
    def lock(self) -> Iterator[None]:
        """
        Hold an exclusive inter-process lock on the state file.

        Blocks until the lock is available. Wrap every load-modify-save
        cycle in this context.

        Raises:
            StateWriteError: If the lock file cannot be opened
        """
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            lock_file = open(self.lock_path, 'a')
        except OSError as e:
            logger.error(f"Failed to open lock file {self.lock_path}: {e}", exc_info=True)
            raise StateWriteError(f"Failed to open lock file {self.lock_path}: {e}") from e

        with lock_file:
            # Acquire exclusive lock (blocks until available)
            fcntl.flock(lock_file.fileno(), fcntl.LOCK_EX)
            try:
                yield
            finally:
                fcntl.flock(lock_file.fileno(), fcntl.LOCK_UN)

    def save(self, state: TreeState) -> None:
        """
        Persist tree state using atomic write strategy.

        Steps:
        1. Create backup of existing file
        2. Write to a uniquely named temporary file in the same directory
        3. Flush to disk (fsync)
        4. Atomically replace the target file

        Callers that read the state before saving should hold ``lock()``.

        Raises:
            StateWriteError: If the state cannot be written
        """
        start_time = time.monotonic()
        data: Dict[str, Any] = {"format_version": STATE_FORMAT_VERSION}
        data.update(state.to_dict())

        tmp_path = None
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            self._create_backup()

            with tempfile.NamedTemporaryFile(
                'w',
                dir=self.path.parent,
                prefix=f"{self.path.name}.",
                suffix='.tmp',
                delete=False,
            ) as f:
                tmp_path = Path(f.name)
                json.dump(data, f, indent=2)
                f.flush()
                os.fsync(f.fileno())

            os.replace(tmp_path, self.path)
        except OSError as e:
            if tmp_path is not None and tmp_path.exists():
                tmp_path.unlink()
            logger.error(f"Failed to persist tree state to {self.path}: {e}", exc_info=True)
            raise StateWriteError(f"Failed to persist tree state to {self.path}: {e}") from e

        log_state_persisted(
            logger,
            path=str(self.path),
            leaf_count=state.next_index,
            merkle_root=state.roots[state.current_root_index].hex(),
            duration_ms=(time.monotonic() - start_time) * 1000,
        )

    def load(self) -> TreeState:
        """
        Load tree state from disk.

        Raises:
            StateReadError: If the file cannot be read or is not valid JSON
            InvalidTreeStateError: If the stored layout is malformed
        """
        try:
            with open(self.path, 'r') as f:
                data = json.load(f)
        except json.JSONDecodeError as e:
            logger.error(f"Failed to parse tree state JSON from {self.path}: {e}", exc_info=True)
            raise StateReadError(f"Failed to parse tree state JSON from {self.path}: {e}") from e
        except OSError as e:
            logger.error(f"Failed to load tree state from {self.path}: {e}", exc_info=True)
            raise StateReadError(f"Failed to load tree state from {self.path}: {e}") from e

        if not isinstance(data, dict):
            raise InvalidTreeStateError(f"Tree state in {self.path} is not a JSON object")

        version = data.get("format_version")
        if version != STATE_FORMAT_VERSION:
            raise InvalidTreeStateError(
                f"Unsupported tree state format_version {version!r} in {self.path}"
            )

        state = TreeState.from_dict(data)
        logger.debug(
            f"Loaded tree state from {self.path}: depth={state.depth}, "
            f"next_index={state.next_index}"
        )
        return state

    def _create_backup(self) -> None:
        """
        Create rolling backup of the state file.

        Rotates backups:
        - tree_state.json.bak.N -> deleted
        - tree_state.json.bak.1 -> tree_state.json.bak.2
        - tree_state.json -> tree_state.json.bak.1
        """
        if not self.path.exists() or self.backup_count < 1:
            return

        try:
            oldest_backup = Path(f"{self.path}.bak.{self.backup_count}")
            if oldest_backup.exists():
                oldest_backup.unlink()

            for i in range(self.backup_count - 1, 0, -1):
                old_backup = Path(f"{self.path}.bak.{i}")
                new_backup = Path(f"{self.path}.bak.{i + 1}")
                if old_backup.exists():
                    old_backup.rename(new_backup)

            backup_path = Path(f"{self.path}.bak.1")
            shutil.copy2(self.path, backup_path)

            logger.debug(f"Created backup of tree state at {backup_path}")

        except OSError as e:
            # Backup failure must not block the write itself
            logger.warning(f"Failed to create backup of tree state: {e}")
