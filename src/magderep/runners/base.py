from __future__ import annotations

import logging
import shutil
from pathlib import Path
from typing import Mapping, Protocol, Sequence

from magderep.exceptions import ExactAniError
from magderep.logging import get_logger
from magderep.utils.subprocess import CommandExecutionError, CommandResult, run_command


class ExactAniOracle(Protocol):
    """Precise ANI between two genome FASTA files, or None when the tool reports none."""

    def ani(self, query: Path, reference: Path) -> float | None: ...


class ToolRunner:
    """Base abstraction for external tools."""

    def __init__(self, executable: str, *, logger: logging.Logger | None = None) -> None:
        self.executable = executable
        self.logger = logger or get_logger(f"magderep.runners.{executable}")

    def command(self, args: Sequence[str | Path]) -> list[str]:
        return [self.executable, *[str(arg) for arg in args]]

    def is_available(self) -> bool:
        return shutil.which(self.executable) is not None

    def version(self) -> str:
        try:
            result = self.run(["--version"], check=False)
        except CommandExecutionError:
            return "unknown"
        version_line = result.stdout.strip() or result.stderr.strip()
        return version_line or "unknown"

    def run(
        self,
        args: Sequence[str | Path],
        *,
        cwd: Path | None = None,
        env: Mapping[str, str] | None = None,
        check: bool = True,
    ) -> CommandResult:
        return run_command(
            self.command(args),
            cwd=cwd,
            env=env,
            check=check,
            logger=self.logger,
        )

    def run_for_pair(self, args: Sequence[str | Path], *, query: Path, reference: Path) -> CommandResult:
        try:
            return self.run(args)
        except CommandExecutionError as exc:
            raise ExactAniError(
                f"{self.executable} failed to compute ANI between {query} and {reference}: {exc}"
            ) from exc
