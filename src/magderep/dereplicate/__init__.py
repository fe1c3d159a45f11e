"""Quality filtering, MinHash sketching and greedy ANI clustering."""

from magderep.dereplicate.engine import ClusterMethod, ClusterThresholds, GreedyClusterer
from magderep.dereplicate.pipeline import DistanceRecord, cluster, report_distances, run_clustering
from magderep.dereplicate.quality import QualityFormula

__all__ = [
    "ClusterMethod",
    "ClusterThresholds",
    "DistanceRecord",
    "GreedyClusterer",
    "QualityFormula",
    "cluster",
    "report_distances",
    "run_clustering",
]
