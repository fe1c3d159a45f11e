from __future__ import annotations

from pathlib import Path
from typing import Any, Mapping, TypeVar

import yaml
from pydantic import BaseModel, ConfigDict, Field, PositiveInt, ValidationError, model_validator

from magderep.dereplicate.engine import ClusterMethod
from magderep.dereplicate.minhash import DEFAULT_KMER_LENGTH, DEFAULT_NUM_HASHES
from magderep.dereplicate.quality import QualityFormula
from magderep.exceptions import MagDerepUsageError


class CommonConfig(BaseModel):
    """Shared command options across magderep subcommands."""

    model_config = ConfigDict(extra="forbid")

    genome_fasta_files: list[Path] = Field(default_factory=list)
    genome_fasta_directory: Path | None = None
    genome_fasta_list: Path | None = None
    genome_fasta_extension: str = Field(default="fna", min_length=1)

    num_hashes: PositiveInt = DEFAULT_NUM_HASHES
    kmer_length: int = Field(default=DEFAULT_KMER_LENGTH, ge=1, le=32)

    threads: PositiveInt = 1
    force: bool = False
    log_file: Path | None = None
    verbose: bool = False
    quiet: bool = False

    @model_validator(mode="after")
    def _validate_common(self) -> "CommonConfig":
        if self.verbose and self.quiet:
            raise ValueError("`verbose` and `quiet` cannot both be true.")

        sources = [
            name
            for name, value in (
                ("genome_fasta_files", self.genome_fasta_files),
                ("genome_fasta_directory", self.genome_fasta_directory),
                ("genome_fasta_list", self.genome_fasta_list),
            )
            if value
        ]
        if not sources:
            raise ValueError(
                "Path(s) to genome FASTA files must be given with `genome_fasta_files`, "
                "`genome_fasta_directory` or `genome_fasta_list`."
            )
        if len(sources) > 1:
            raise ValueError(f"Options {', '.join(sources)} are mutually exclusive.")
        return self


class ClusterConfig(CommonConfig):
    ani: float = Field(ge=0.0, le=100.0)
    minhash_prethreshold: float = Field(default=90.0, ge=0.0, le=100.0)
    method: ClusterMethod = ClusterMethod.MINHASH_FASTANI

    checkm_tab_table: Path | None = None
    min_completeness: float = Field(default=0.0, ge=0.0, le=100.0)
    max_contamination: float | None = Field(default=None, ge=0.0)
    quality_formula: QualityFormula = QualityFormula.COMPLETENESS_5CONTAMINATION

    output_cluster_definition: Path | None = None
    output_representative_list: Path | None = None
    output_representative_fasta_directory: Path | None = None

    @model_validator(mode="after")
    def _validate_threshold_relationships(self) -> "ClusterConfig":
        if self.checkm_tab_table is None:
            if self.min_completeness > 0.0:
                raise ValueError("`min_completeness` requires `checkm_tab_table`.")
            if self.max_contamination is not None:
                raise ValueError("`max_contamination` requires `checkm_tab_table`.")
        if self.method.two_stage and self.minhash_prethreshold > self.ani:
            raise ValueError("`minhash_prethreshold` must be <= `ani`.")
        return self


class DistConfig(CommonConfig):
    checkm_tab_table: Path
    output: Path | None = None


class MagDerepConfig(BaseModel):
    """Top-level YAML config model; sections are validated after CLI overrides are merged."""

    model_config = ConfigDict(extra="forbid")

    cluster: dict[str, Any] | None = None
    dist: dict[str, Any] | None = None


def load_config(config_path: Path | None) -> MagDerepConfig:
    """Load and validate a YAML config file."""

    if config_path is None:
        return MagDerepConfig()

    if not config_path.exists():
        raise MagDerepUsageError(f"Config file does not exist: {config_path}")

    if not config_path.is_file():
        raise MagDerepUsageError(f"Config path is not a file: {config_path}")

    try:
        payload_raw = yaml.safe_load(config_path.read_text(encoding="utf-8"))
    except yaml.YAMLError as exc:
        raise MagDerepUsageError(f"Config file is not valid YAML: {config_path}\n{exc}") from exc
    if payload_raw is None:
        payload_raw = {}

    if not isinstance(payload_raw, dict):
        raise MagDerepUsageError("Config YAML must be a key/value mapping at the top level.")

    try:
        return MagDerepConfig.model_validate(payload_raw)
    except ValidationError as exc:
        raise MagDerepUsageError(f"Invalid config file: {config_path}\n{exc}") from exc


T = TypeVar("T", bound=CommonConfig)


def merge_command_config(
    *,
    config_path: Path | None,
    section: str,
    model_cls: type[T],
    cli_overrides: Mapping[str, Any],
) -> T:
    """Merge YAML config values with explicit CLI overrides and validate."""

    root = load_config(config_path)
    section_values = getattr(root, section)

    merged: dict[str, Any] = {}
    if section_values is not None:
        merged.update(section_values)

    for key, value in cli_overrides.items():
        if value is None:
            continue
        if isinstance(value, (list, tuple)) and not value:
            continue
        merged[key] = value

    try:
        return model_cls.model_validate(merged)
    except ValidationError as exc:
        raise MagDerepUsageError(f"Invalid merged config for `{section}`:\n{exc}") from exc
