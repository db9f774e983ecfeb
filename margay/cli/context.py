"""
Copyright (C) 2026 Garudex Labs.  All Rights Reserved.
Margay, a product of Garudex Labs

Shared state for Margay CLI commands.

The root command loads the configuration once; subcommands reach it, and
the tree state store it points at, through ``ctx.obj``.
"""

from pathlib import Path
from typing import Optional

import click

from margay.config.settings import MargayConfig
from margay.storage.state_store import FileStateStore


class CLIContext:
    """Configuration and state store handed to every subcommand."""

    def __init__(self):
        self.config: Optional[MargayConfig] = None
        self.config_path: Optional[str] = None
        self.verbose = False
        self._state_store: Optional[FileStateStore] = None

    @property
    def state_store(self) -> FileStateStore:
        """
        Store for the configured state file, created on first use.

        Raises:
            click.UsageError: If no configuration has been loaded
        """
        if self.config is None:
            raise click.UsageError("Configuration has not been loaded")
        if self._state_store is None:
            self._state_store = FileStateStore(
                str(Path(self.config.storage.state_file).expanduser()),
                backup_count=self.config.storage.backup_count,
            )
        return self._state_store


pass_context = click.make_pass_decorator(CLIContext, ensure=True)
