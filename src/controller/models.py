# src/controller/models.py — v1
"""Controller command results."""

from __future__ import annotations

import shlex

from pydantic import BaseModel


class CommandResult(BaseModel):
    """Exit code and output of one controller command."""

    args: list[str]
    exit_code: int
    output: str = ""
    error_output: str = ""

    @property
    def ok(self) -> bool:
        return self.exit_code == 0

    @property
    def combined_output(self) -> str:
        """Stdout followed by stderr, as a terminal would show them."""
        return "".join(part for part in (self.output, self.error_output) if part)

    @property
    def command_line(self) -> str:
        return shlex.join(self.args)
