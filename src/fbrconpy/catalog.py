from __future__ import annotations

import logging
from typing import Sequence

from .parser import split_vars

log = logging.getLogger(__name__)


class CommandCatalog:
    """Stores what the server reported about itself in the current session.

    The catalog is reset at the start of every login attempt and
    filled from the server's ``admin.help`` listing after logging in.

    """

    commands: list[str]
    """Every command listed by the server, variables included."""
    vars: list[str]
    """The commands that correspond to server variables (``vars.*``)."""
    server_version: tuple[str, str] | None
    """The game and version reported by the server, if requested."""

    def __init__(self) -> None:
        self.reset()

    def __repr__(self) -> str:
        return "<{} {} command(s), {} var(s), version={!r}>".format(
            type(self).__name__,
            len(self.commands),
            len(self.vars),
            self.server_version,
        )

    def reset(self) -> None:
        """Clears everything in the catalog."""
        self.commands = []
        self.vars = []
        self.server_version = None

    def update_commands(self, commands: Sequence[str]) -> None:
        """Replaces the catalog's commands with the given ``admin.help`` listing."""
        self.commands = list(commands)
        self.vars = split_vars(self.commands)
        log.debug(
            f"catalog updated with {len(self.commands)} command(s), "
            f"{len(self.vars)} of which are variables"
        )
