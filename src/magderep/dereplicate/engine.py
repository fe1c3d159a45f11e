from __future__ import annotations

from concurrent.futures import Executor
from dataclasses import dataclass, field
from enum import Enum
from typing import Callable, Sequence

from magderep.dereplicate.pool import worker_pool
from magderep.logging import get_logger

ApproximateAni = Callable[[int, int], float]
ExactAni = Callable[[int, int], "float | None"]

logger = get_logger("magderep.engine")


class ClusterMethod(str, Enum):
    MINHASH = "minhash"
    MINHASH_FASTANI = "minhash+fastani"
    MINHASH_SKANI = "minhash+skani"

    @property
    def two_stage(self) -> bool:
        return self is not ClusterMethod.MINHASH


@dataclass(frozen=True, slots=True)
class ClusterThresholds:
    """ANI cutoffs in percent."""

    ani: float
    minhash_prethreshold: float = 90.0

    def __post_init__(self) -> None:
        for name, value in (("ani", self.ani), ("minhash_prethreshold", self.minhash_prethreshold)):
            if not 0.0 <= value <= 100.0:
                raise ValueError(f"{name} must be a percentage in [0, 100], got {value}")


@dataclass(slots=True)
class ClusteringStats:
    approximate_comparisons: int = 0
    exact_comparisons: int = 0
    clusters: int = 0
    representatives: list[int] = field(default_factory=list)


class GreedyClusterer:
    """Representative-first greedy clustering over a quality ranking.

    Genomes are visited in ranked order. Each unassigned genome becomes the
    representative of a new cluster and claims every later unassigned genome
    that passes the ANI test against it. With a two-stage test the exact ANI
    is only computed for pairs whose MinHash ANI reaches the prethreshold.

    Distance callables take genome indices. Comparisons of one sweep run on
    the executor; the assignment bitmap is only written by the calling thread
    after the sweep has been joined.
    """

    def __init__(
        self,
        *,
        approximate_ani: ApproximateAni,
        thresholds: ClusterThresholds,
        exact_ani: ExactAni | None = None,
        two_stage: bool = True,
        executor: Executor | None = None,
    ) -> None:
        if two_stage and exact_ani is None:
            raise ValueError("Two-stage clustering needs an exact ANI function")
        self._approximate_ani = approximate_ani
        # None selects the single-stage test
        self._exact_ani = exact_ani if two_stage else None
        self._thresholds = thresholds
        self._executor = executor
        self.stats = ClusteringStats()

    def cluster(self, ranked: Sequence[int]) -> list[list[int]]:
        ranked = list(ranked)
        if len(set(ranked)) != len(ranked):
            raise ValueError("Ranking contains a genome index more than once")

        executor = self._executor if self._executor is not None else worker_pool()
        self.stats = ClusteringStats()

        # indexed by rank position
        assigned = [False] * len(ranked)
        clusters: list[list[int]] = []

        for position, representative in enumerate(ranked):
            if assigned[position]:
                continue
            assigned[position] = True

            candidates = [later for later in range(position + 1, len(ranked)) if not assigned[later]]
            accepted = self._sweep(executor, representative, [ranked[later] for later in candidates])

            members = [representative]
            for later, is_member in zip(candidates, accepted):
                if is_member:
                    assigned[later] = True
                    members.append(ranked[later])

            logger.debug(
                "Cluster %d: representative %d with %d member(s)",
                len(clusters) + 1,
                representative,
                len(members) - 1,
            )
            clusters.append(members)
            self.stats.representatives.append(representative)

        self.stats.clusters = len(clusters)
        return clusters

    def _sweep(self, executor: Executor, representative: int, candidates: list[int]) -> list[bool]:
        if not candidates:
            return []

        approximate = list(
            executor.map(lambda genome: self._approximate_ani(representative, genome), candidates)
        )
        self.stats.approximate_comparisons += len(candidates)

        exact_ani = self._exact_ani
        if exact_ani is None:
            return [ani >= self._thresholds.ani for ani in approximate]

        passing = [
            genome
            for genome, ani in zip(candidates, approximate)
            if ani >= self._thresholds.minhash_prethreshold
        ]
        if not passing:
            return [False] * len(candidates)

        exact = dict(zip(passing, executor.map(lambda genome: exact_ani(representative, genome), passing)))
        self.stats.exact_comparisons += len(passing)

        accepted: list[bool] = []
        for genome in candidates:
            value = exact.get(genome)
            accepted.append(value is not None and value >= self._thresholds.ani)
        return accepted
