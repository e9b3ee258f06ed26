"""Pass-level timing for BioSim runs.

Times the four passes of the annual cycle. Zero overhead when disabled.

Usage:
    from biosim.perf import PerfMonitor

    perf = PerfMonitor(enabled=True)

    with perf.track("feeding"):
        scheduler.feeding_pass()

    print(perf.report())
"""

import time
from collections import defaultdict
from contextlib import contextmanager
from dataclasses import dataclass
from typing import Dict


# Pass names used by the annual-cycle scheduler, in execution order
CYCLE_PASSES = ('aging', 'wandering', 'breeding', 'feeding')


@dataclass
class PassTiming:
    """Accumulated wall-clock time of one pass."""
    total_time: float = 0.0
    call_count: int = 0

    @property
    def mean_time(self) -> float:
        return self.total_time / self.call_count if self.call_count > 0 else 0.0


class PerfMonitor:
    """Per-pass timer; ``track`` is a no-op while disabled."""

    def __init__(self, enabled: bool = False):
        self.enabled = enabled
        self.timings: Dict[str, PassTiming] = defaultdict(PassTiming)

    @contextmanager
    def track(self, name: str):
        """Time the enclosed block under ``name``."""
        if not self.enabled:
            yield
            return
        t0 = time.perf_counter()
        try:
            yield
        finally:
            timing = self.timings[name]
            timing.total_time += time.perf_counter() - t0
            timing.call_count += 1

    def _ranked(self):
        return sorted(self.timings.items(), key=lambda kv: -kv[1].total_time)

    def summary(self) -> dict:
        """Per-pass totals, call counts, means and shares (JSON-ready)."""
        total = sum(t.total_time for t in self.timings.values())
        result = {}
        for name, timing in self._ranked():
            result[name] = {
                'total_s': round(timing.total_time, 4),
                'calls': timing.call_count,
                'mean_ms': round(timing.mean_time * 1000, 3),
                'pct': round(timing.total_time / total * 100, 1) if total > 0 else 0.0,
            }
        result['_total_s'] = round(total, 4)
        return result

    def report(self, title: str = "Annual cycle timing") -> str:
        """Human-readable table of the tracked passes."""
        summary = self.summary()
        total = summary.pop('_total_s')
        rule = f"{'-'*12} {'-'*10} {'-'*6} {'-'*10} {'-'*6}"
        lines = [
            f"{'='*48}",
            f" {title}",
            f"{'='*48}",
            f"{'Pass':<12} {'Total (s)':>10} {'Years':>6} {'Mean (ms)':>10} {'%':>6}",
            rule,
        ]
        for name, row in summary.items():
            lines.append(
                f"{name:<12} {row['total_s']:>10.4f} {row['calls']:>6} "
                f"{row['mean_ms']:>10.3f} {row['pct']:>5.1f}%"
            )
        lines.append(rule)
        lines.append(f"{'TOTAL':<12} {total:>10.4f}")
        return '\n'.join(lines)
