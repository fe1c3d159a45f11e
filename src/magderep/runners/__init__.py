"""External exact-ANI tool adapters."""

from magderep.runners.base import ExactAniOracle, ToolRunner
from magderep.runners.fastani import FastANIRunner
from magderep.runners.skani import SkaniRunner

__all__ = [
    "ExactAniOracle",
    "FastANIRunner",
    "SkaniRunner",
    "ToolRunner",
]
