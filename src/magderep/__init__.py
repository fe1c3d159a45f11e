"""Quality-aware ANI dereplication of microbial genomes."""

__version__ = "0.1.0"
