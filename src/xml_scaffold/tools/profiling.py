"""Stage-level profiling for xml-scaffold.

A profiled run is split into named stages (``tokenization``,
``tree_building``, ``rendering``). Each stage records wall time, the change in
resident memory and how many units (tokens or nodes) it handled. Runs are
collected into a :class:`ProfileReport` that can be written out as JSON.
"""

import json
import time
from contextlib import contextmanager
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, Iterator, List, Optional

import psutil

from xml_scaffold.api import XMLScaffoldParser
from xml_scaffold.shared.config import ParserConfig
from xml_scaffold.shared.logging import get_logger

# A stage above this share of the mean run time is called out as dominant
DOMINANT_STAGE_SHARE = 0.4

_BYTES_PER_MB = 1024 * 1024


@dataclass
class StageTiming:
    """Measurements for one stage of one run."""

    stage: str
    started: float
    finished: float = 0.0
    rss_before: int = 0
    rss_after: int = 0
    cpu_percent: float = 0.0
    units: int = 0

    @property
    def elapsed_ms(self) -> float:
        return (self.finished - self.started) * 1000

    @property
    def rss_delta(self) -> int:
        """Change in resident set size over the stage, in bytes."""
        return self.rss_after - self.rss_before

    @property
    def units_per_second(self) -> float:
        seconds = self.finished - self.started
        if seconds <= 0:
            return 0.0
        return self.units / seconds

    def to_dict(self) -> Dict[str, Any]:
        return {
            "stage": self.stage,
            "elapsed_ms": self.elapsed_ms,
            "rss_delta": self.rss_delta,
            "cpu_percent": self.cpu_percent,
            "units": self.units,
            "units_per_second": self.units_per_second,
        }


@dataclass
class ProfileRun:
    """One profiled pass over an input."""

    run_id: str
    started: float
    finished: float = 0.0
    input_bytes: int = 0
    stages: List[StageTiming] = field(default_factory=list)
    metadata: Dict[str, Any] = field(default_factory=dict)

    @property
    def elapsed_ms(self) -> float:
        return (self.finished - self.started) * 1000

    @property
    def megabytes_per_second(self) -> float:
        seconds = self.finished - self.started
        if seconds <= 0:
            return 0.0
        return self.input_bytes / _BYTES_PER_MB / seconds

    def stage(self, name: str) -> Optional[StageTiming]:
        """Return the timing recorded for ``name``, if any."""
        for timing in self.stages:
            if timing.stage == name:
                return timing
        return None


@dataclass
class ProfileReport:
    """Aggregate view over a list of runs."""

    runs: List[ProfileRun]
    created_at: float = field(default_factory=time.time)

    @property
    def run_count(self) -> int:
        return len(self.runs)

    @property
    def mean_elapsed_ms(self) -> float:
        if not self.runs:
            return 0.0
        return sum(run.elapsed_ms for run in self.runs) / len(self.runs)

    @property
    def mean_megabytes_per_second(self) -> float:
        if not self.runs:
            return 0.0
        return sum(run.megabytes_per_second for run in self.runs) / len(self.runs)

    def stage_means(self) -> Dict[str, float]:
        """Mean elapsed milliseconds per stage name, in first-seen order."""
        totals: Dict[str, List[float]] = {}
        for run in self.runs:
            for timing in run.stages:
                totals.setdefault(timing.stage, []).append(timing.elapsed_ms)
        return {stage: sum(values) / len(values) for stage, values in totals.items()}

    def to_dict(self) -> Dict[str, Any]:
        return {
            "created_at": self.created_at,
            "summary": {
                "run_count": self.run_count,
                "mean_elapsed_ms": self.mean_elapsed_ms,
                "mean_mb_per_s": self.mean_megabytes_per_second,
                "stage_means_ms": self.stage_means(),
            },
            "runs": [
                {
                    "run_id": run.run_id,
                    "input_bytes": run.input_bytes,
                    "elapsed_ms": run.elapsed_ms,
                    "mb_per_s": run.megabytes_per_second,
                    "metadata": run.metadata,
                    "stages": [timing.to_dict() for timing in run.stages],
                }
                for run in self.runs
            ],
        }


class PerformanceProfiler:
    """Collects stage timings for parser runs.

    Examples:
        >>> profiler = PerformanceProfiler()
        >>> with profiler.run("sample", input_bytes=len(data)) as run:
        ...     with profiler.stage(run, "tree_building") as timing:
        ...         timing.units = parser.parse(data).node_count
        >>> report = profiler.report()
    """

    def __init__(self, track_memory: bool = True):
        """Initialize the profiler.

        Args:
            track_memory: Sample the process RSS and CPU load around each stage
        """
        self.track_memory = track_memory
        self.runs: List[ProfileRun] = []
        self.active_run: Optional[ProfileRun] = None
        self._process = psutil.Process() if track_memory else None
        self.logger = get_logger(__name__, None, "performance_profiler")

    def sample_memory(self) -> int:
        """Resident set size in bytes, or 0 when memory tracking is off."""
        if self._process is None:
            return 0
        return self._process.memory_info().rss

    def sample_cpu(self) -> float:
        if self._process is None:
            return 0.0
        return self._process.cpu_percent()

    def begin_run(self, run_id: str, input_bytes: int = 0) -> ProfileRun:
        run = ProfileRun(run_id=run_id, started=time.time(), input_bytes=input_bytes)
        self.active_run = run
        self.logger.debug(
            "Profile run started",
            extra={"run_id": run_id, "input_bytes": input_bytes}
        )
        return run

    def finish_run(self, run: ProfileRun) -> None:
        run.finished = time.time()
        self.runs.append(run)
        if self.active_run is run:
            self.active_run = None
        self.logger.debug(
            "Profile run finished",
            extra={
                "run_id": run.run_id,
                "elapsed_ms": run.elapsed_ms,
                "stage_count": len(run.stages),
            }
        )

    @contextmanager
    def run(self, run_id: str, input_bytes: int = 0) -> Iterator[ProfileRun]:
        """Context manager that records one run, even if its body raises."""
        run = self.begin_run(run_id, input_bytes)
        try:
            yield run
        finally:
            self.finish_run(run)

    @contextmanager
    def stage(self, run: ProfileRun, name: str) -> Iterator[StageTiming]:
        """Context manager timing stage ``name`` of ``run``.

        The body may set ``units`` on the yielded timing.
        """
        self.sample_cpu()
        timing = StageTiming(stage=name, started=time.time(), rss_before=self.sample_memory())
        try:
            yield timing
        finally:
            timing.finished = time.time()
            timing.rss_after = self.sample_memory()
            timing.cpu_percent = self.sample_cpu()
            run.stages.append(timing)

    def report(self) -> ProfileReport:
        return ProfileReport(runs=list(self.runs))

    def save_report(self, report: ProfileReport, output_path: Path) -> None:
        """Write ``report`` to ``output_path`` as indented JSON."""
        output_path = Path(output_path)
        output_path.write_text(json.dumps(report.to_dict(), indent=2))
        self.logger.info(
            "Profile report written",
            extra={"output_path": str(output_path), "run_count": report.run_count}
        )

    def recommendations(self, report: ProfileReport) -> List[str]:
        """Plain-language hints derived from the stage timings in ``report``."""
        if not report.runs:
            return ["No profiling data available for analysis"]

        hints = []
        mean_elapsed = report.mean_elapsed_ms
        for stage, mean in report.stage_means().items():
            if mean_elapsed > 0 and mean > mean_elapsed * DOMINANT_STAGE_SHARE:
                hints.append(f"Stage '{stage}' takes most of the processing time")

        if any(
            run.metadata.get("max_depth_reached", 0) >= run.metadata.get("max_depth_limit", float("inf"))
            for run in report.runs
        ):
            hints.append(
                "Nesting reached the depth ceiling; consider ParserConfig.shallow() "
                "for untrusted input"
            )

        return hints or ["No stage stands out in the recorded runs"]

    def reset(self) -> None:
        """Forget every recorded run."""
        dropped = len(self.runs)
        self.runs.clear()
        self.active_run = None
        self.logger.info("Profile runs cleared", extra={"dropped": dropped})


def benchmark_parser(
    source: str,
    iterations: int = 10,
    config: Optional[ParserConfig] = None,
    profiler: Optional[PerformanceProfiler] = None
) -> ProfileReport:
    """Profile tokenization, tree building and rendering of ``source``.

    Args:
        source: Markup to parse
        iterations: Number of profiled runs
        config: Parser configuration to benchmark
        profiler: Profiler to record into, a new one by default

    Returns:
        ProfileReport with one run per iteration
    """
    if iterations < 1:
        raise ValueError("iterations must be >= 1")

    config = config or ParserConfig.default()
    profiler = profiler or PerformanceProfiler()
    parser = XMLScaffoldParser(config=config)
    input_bytes = len(source.encode("utf-8"))
    label = config.name or "custom"

    for iteration in range(iterations):
        with profiler.run(f"{label}-{iteration}", input_bytes) as run:
            with profiler.stage(run, "tokenization") as timing:
                timing.units = parser.tokenize(source).token_count
            with profiler.stage(run, "tree_building") as timing:
                result = parser.parse(source)
                timing.units = result.node_count
            with profiler.stage(run, "rendering") as timing:
                parser.render(result)
                timing.units = result.node_count

            run.metadata = {
                "configuration": config.name,
                "iteration": iteration,
                "success": result.success,
                "node_count": result.node_count,
                "malformed_count": result.malformed_count,
                "max_depth_reached": result.performance.max_depth_reached,
                "max_depth_limit": config.tree.max_depth,
            }

    return profiler.report()


def benchmark_presets(source: str, iterations: int = 10) -> Dict[str, ProfileReport]:
    """Benchmark each preset configuration on the same input."""
    presets = {
        "default": ParserConfig.default(),
        "minimal": ParserConfig.minimal(),
        "shallow": ParserConfig.shallow(),
    }
    return {name: benchmark_parser(source, iterations, config) for name, config in presets.items()}
