"""Developer tools for xml-scaffold.

Stage-level performance profiling with memory tracking.
"""

from .profiling import (
    PerformanceProfiler,
    ProfileReport,
    ProfileRun,
    StageTiming,
    benchmark_parser,
    benchmark_presets,
)

__all__ = [
    "PerformanceProfiler",
    "ProfileReport",
    "ProfileRun",
    "StageTiming",
    "benchmark_parser",
    "benchmark_presets",
]
