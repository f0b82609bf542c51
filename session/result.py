"""Probe result types for netprobe.

Contains:
- ProbeResult: Outcome of one echo round trip
- LatencyStats: Computed latency statistics in milliseconds
- compute_latency_stats: Compute stats from latency samples
- ProbeSummary: Per-connection accumulator logged by the client
"""

from dataclasses import dataclass, field

NS_PER_MS = 1_000_000


@dataclass(frozen=True)
class ProbeResult:
    """Outcome of one echo round trip.

    Attributes:
        sent_ns: Wall clock time the request was sent.
        echoed_ns: Timestamp carried back in the reply.
        received_ns: Wall clock time the reply arrived.
    """

    sent_ns: int
    echoed_ns: int
    received_ns: int

    @property
    def latency_ns(self) -> int:
        """Reply arrival time minus the timestamp inside the reply."""
        return self.received_ns - self.echoed_ns

    @property
    def ordered(self) -> bool:
        """False if the reply seems to predate its request (clock step or stale reply)."""
        return self.latency_ns >= 0

    @property
    def latency_ms(self) -> float:
        return self.latency_ns / NS_PER_MS


@dataclass
class LatencyStats:
    """Computed latency statistics in milliseconds."""

    count: int
    min_ms: float
    max_ms: float
    avg_ms: float
    p50_ms: float
    p95_ms: float
    p99_ms: float


def compute_latency_stats(samples_ms: list[float]) -> LatencyStats | None:
    """Compute latency statistics from samples (in milliseconds).

    Returns None if no samples available.
    """
    if not samples_ms:
        return None

    count = len(samples_ms)
    ordered = sorted(samples_ms)

    def percentile(sorted_data: list[float], p: float) -> float:
        idx = int(p / 100 * (len(sorted_data) - 1))
        return sorted_data[idx]

    return LatencyStats(
        count=count,
        min_ms=ordered[0],
        max_ms=ordered[-1],
        avg_ms=sum(ordered) / count,
        p50_ms=percentile(ordered, 50),
        p95_ms=percentile(ordered, 95),
        p99_ms=percentile(ordered, 99),
    )


@dataclass
class ProbeSummary:
    """Running totals for one probing session.

    Reversed replies are counted but never contribute a latency sample.
    """

    probes: int = 0
    reversed: int = 0
    samples_ms: list[float] = field(default_factory=list)

    def add(self, result: ProbeResult) -> None:
        self.probes += 1
        if result.ordered:
            self.samples_ms.append(result.latency_ms)
        else:
            self.reversed += 1

    @property
    def latency_stats(self) -> LatencyStats | None:
        return compute_latency_stats(self.samples_ms)

    def describe(self) -> str:
        """One-line summary for log records."""
        text = f"{self.probes} probes, {self.reversed} reversed"
        latency = self.latency_stats
        if latency:
            text += (
                f", latency avg={latency.avg_ms:.2f}ms min={latency.min_ms:.2f}ms "
                f"max={latency.max_ms:.2f}ms p50={latency.p50_ms:.2f}ms "
                f"p95={latency.p95_ms:.2f}ms p99={latency.p99_ms:.2f}ms"
            )
        return text
