"""
Copyright (C) 2026 Garudex Labs.  All Rights Reserved.
ReserveProof, a product of Garudex Labs

CLI context for ReserveProof.

Provides shared context object and decorators for CLI commands.
"""

from typing import Optional

import click

from reserveproof.merkle import FieldHasher, SnapshotStore, create_hasher, get_hasher


# Global context object to share configuration across commands
class CLIContext:
    """Context object for CLI commands."""

    def __init__(self):
        self.config = None
        self.config_path = None
        self.verbose = False

    def hasher(self, name: Optional[str] = None) -> FieldHasher:
        """Hasher named on the command line, else the configured one."""
        if name:
            return get_hasher(name)
        return create_hasher(self.config.hash)

    def snapshot_store(self) -> SnapshotStore:
        return SnapshotStore.from_config(self.config)


pass_context = click.make_pass_decorator(CLIContext, ensure=True)
