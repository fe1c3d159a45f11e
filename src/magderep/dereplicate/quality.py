from __future__ import annotations

import math
from enum import Enum
from typing import Mapping, Sequence

from magderep.checkm import GenomeQuality, QualityTable
from magderep.dereplicate.fasta import AssemblyStats, assembly_stats_for_path
from magderep.exceptions import MissingQualityError
from magderep.genomes import Genome
from magderep.logging import get_logger

NEUTRAL_SCORE = 0.0

logger = get_logger("magderep.quality")


class QualityFormula(str, Enum):
    """How completeness and contamination combine into one ranking score."""

    COMPLETENESS_5CONTAMINATION = "completeness-5contamination"
    COMPLETENESS_4CONTAMINATION = "completeness-4contamination"
    PARKS2020_REDUCED = "Parks2020_reduced"
    DREP = "dRep"

    @property
    def needs_assembly_stats(self) -> bool:
        return self in (QualityFormula.PARKS2020_REDUCED, QualityFormula.DREP)


def composite_score(
    quality: GenomeQuality,
    *,
    formula: QualityFormula = QualityFormula.COMPLETENESS_5CONTAMINATION,
    stats: AssemblyStats | None = None,
) -> float:
    """Deterministic quality score used for representative selection."""

    if formula is QualityFormula.COMPLETENESS_4CONTAMINATION:
        return quality.completeness - (4.0 * quality.contamination)

    base = quality.completeness - (5.0 * quality.contamination)
    if formula is QualityFormula.COMPLETENESS_5CONTAMINATION:
        return base

    if stats is None:
        raise ValueError(f"Quality formula {formula.value} requires assembly statistics")

    if formula is QualityFormula.PARKS2020_REDUCED:
        return (
            base
            - (5.0 * stats.contig_count / 100.0)
            - (5.0 * stats.ambiguous_bases / 100000.0)
        )

    # dRep
    return base + (0.5 * math.log10(max(stats.n50, 1)))


def lookup_qualities(
    genomes: Sequence[Genome],
    quality: QualityTable,
) -> dict[int, GenomeQuality]:
    """Link each genome to its quality record, failing on the first unmatched path."""

    resolved: dict[int, GenomeQuality] = {}
    for genome in genomes:
        record = quality.retrieve_via_fasta_path(genome.path)
        if record is None:
            raise MissingQualityError(genome.path)
        resolved[genome.index] = record
    return resolved


def filter_genomes(
    genomes: Sequence[Genome],
    quality: QualityTable | None,
    *,
    min_completeness: float = 0.0,
    max_contamination: float | None = None,
) -> list[Genome]:
    """Drop genomes failing completeness/contamination thresholds, preserving order."""

    if quality is None:
        return list(genomes)

    qualities = lookup_qualities(genomes, quality)
    kept: list[Genome] = []
    for genome in genomes:
        record = qualities[genome.index]
        if record.completeness < min_completeness:
            logger.debug(
                "Excluding %s: completeness %.2f < %.2f",
                genome.path,
                record.completeness,
                min_completeness,
            )
            continue
        if max_contamination is not None and record.contamination > max_contamination:
            logger.debug(
                "Excluding %s: contamination %.2f > %.2f",
                genome.path,
                record.contamination,
                max_contamination,
            )
            continue
        kept.append(genome)

    logger.info(
        "Excluded %d genome(s) failing quality thresholds, %d remain",
        len(genomes) - len(kept),
        len(kept),
    )
    return kept


def score_genomes(
    genomes: Sequence[Genome],
    quality: QualityTable | None,
    *,
    formula: QualityFormula = QualityFormula.COMPLETENESS_5CONTAMINATION,
) -> dict[int, float]:
    if quality is None:
        return {genome.index: NEUTRAL_SCORE for genome in genomes}

    qualities = lookup_qualities(genomes, quality)
    scores: dict[int, float] = {}
    for genome in genomes:
        stats = assembly_stats_for_path(genome.path) if formula.needs_assembly_stats else None
        scores[genome.index] = composite_score(qualities[genome.index], formula=formula, stats=stats)
    return scores


def rank_genomes(genomes: Sequence[Genome], scores: Mapping[int, float]) -> list[int]:
    """Genome indices by descending score; ties keep input order."""

    # sorted() is stable
    ordered = sorted(genomes, key=lambda genome: -scores[genome.index])
    return [genome.index for genome in ordered]
