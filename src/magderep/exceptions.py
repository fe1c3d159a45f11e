from __future__ import annotations

from pathlib import Path


class MagDerepError(Exception):
    """Base class for magderep exceptions."""

    exit_code: int = 1


class MagDerepUsageError(MagDerepError):
    """Raised when command arguments or inputs are invalid."""

    exit_code = 2


class WorkerPoolError(MagDerepUsageError):
    """Raised when the worker pool is initialised twice or used before initialisation."""


class InputResolutionError(MagDerepError):
    """Raised when genome inputs cannot be resolved."""

    exit_code = 2


class NoGenomesFoundError(InputResolutionError):
    """Raised when genome discovery yields no FASTA files."""


class MissingQualityError(InputResolutionError):
    """Raised when a genome cannot be linked to a record in the quality table."""

    def __init__(self, path: Path | str) -> None:
        self.path = str(path)
        super().__init__(
            f"Failed to link genome fasta file {self.path} to a quality record; "
            "check that the quality table bin ids match the FASTA file names."
        )


class ComputationError(MagDerepError):
    """Raised when a distance or sketch cannot be computed."""

    exit_code = 3


class SketchError(ComputationError):
    """Raised when a genome cannot be sketched."""


class SketchParameterMismatchError(ComputationError):
    """Raised when sketches built with different parameters are compared."""


class ExactAniError(ComputationError):
    """Raised when the exact ANI tool fails for a genome pair."""


class FastaFormatError(ComputationError):
    """Raised when a FASTA file cannot be parsed."""
