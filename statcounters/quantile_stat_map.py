"""Named counters derived from quantile stats over sliding windows."""

from __future__ import annotations

import math
import time
from dataclasses import dataclass, field
from typing import Any, Callable, Optional, Protocol, Sequence

from .regex_cache import CachedKeyMap
from .timeseries_exporter import ExportType

INT64_MAX = 2**63 - 1
INT64_MIN = -(2**63)


@dataclass(frozen=True)
class StatDef:
    """One exported aggregate of a quantile stat."""

    type: ExportType = ExportType.SUM
    quantile: float = 0.0


@dataclass
class QuantileEstimates:
    """Sum, count and estimated quantiles as ``(quantile, value)`` pairs."""

    sum: float = 0.0
    count: float = 0.0
    quantiles: list = field(default_factory=list)


@dataclass
class SlidingWindowEstimate:
    """Estimates for one sliding window of ``n_windows`` windows of ``window_length`` seconds."""

    estimate: QuantileEstimates
    window_length: int
    n_windows: int

    @property
    def sliding_window_length(self) -> int:
        return self.window_length * self.n_windows


@dataclass
class Estimates:
    """Estimates for all time and for each sliding window of a stat."""

    all_time_estimate: QuantileEstimates = field(default_factory=QuantileEstimates)
    sliding_windows: list = field(default_factory=list)


class QuantileStat(Protocol):
    """The quantile stat interface the map relies on. Times are in seconds."""

    def get_estimates(self, quantiles: Sequence[float], now: float) -> Estimates: ...

    def creation_time(self) -> float: ...

    def get_sliding_window_lengths(self) -> list[int]: ...

    def flush(self) -> None: ...

    def get_snapshot(self, now: float) -> Any: ...


@dataclass
class SnapshotEntry:
    """A named snapshot of a stat together with its exported definitions."""

    name: str
    snapshot: Any
    stat_defs: list


@dataclass
class _CounterMapEntry:
    stat: QuantileStat
    stat_def: StatDef
    sliding_window_length: Optional[int] = None


@dataclass
class _StatMapEntry:
    stat: QuantileStat
    stat_defs: list


def make_key(
    base: str, stat_def: StatDef, sliding_window_length: Optional[int] = None
) -> str:
    """Full counter name, e.g. ``MyStat.p99.9.60`` or ``MyStat.sum``."""
    tail = "" if sliding_window_length is None else f".{int(sliding_window_length)}"
    export_type = ExportType(stat_def.type)
    if export_type is ExportType.PERCENT:
        return f"{base}.p{format(stat_def.quantile * 100.0, 'g')}{tail}"
    if export_type is ExportType.SUM:
        return f"{base}.sum{tail}"
    if export_type is ExportType.COUNT:
        return f"{base}.count{tail}"
    if export_type is ExportType.AVG:
        return f"{base}.avg{tail}"
    return f"{base}.rate{tail}"


def _clamp_to_int64(value: float) -> int:
    if math.isnan(value):
        return 0
    if value >= INT64_MAX:
        return INT64_MAX
    if value <= INT64_MIN:
        return INT64_MIN
    return int(value)


def extract_value(
    stat_def: StatDef,
    estimate: QuantileEstimates,
    duration: int,
    legacy_use_count_for_rate: bool = False,
) -> int:
    """Compute one aggregate, clamped to the 64-bit integer range.

    Raises ValueError if a requested quantile is missing from ``estimate``.
    """
    export_type = ExportType(stat_def.type)
    if export_type is ExportType.PERCENT:
        for quantile, value in estimate.quantiles:
            if quantile == stat_def.quantile:
                return _clamp_to_int64(float(value))
        raise ValueError(f"Requested missing quantile: {stat_def.quantile}")
    if export_type is ExportType.SUM:
        result = float(estimate.sum)
    elif export_type is ExportType.COUNT:
        result = float(estimate.count)
    elif export_type is ExportType.AVG:
        result = estimate.sum / estimate.count if estimate.count > 0 else 0.0
    else:
        if duration > 0:
            numerator = estimate.count if legacy_use_count_for_rate else estimate.sum
            result = numerator / duration
        else:
            result = float(estimate.count)
    return _clamp_to_int64(result)


def stat_duration(
    sliding_window_length: Optional[int], creation_time: float, now: float
) -> int:
    """Seconds the stat has existed, capped at the sliding window length."""
    diff = int(now - creation_time)
    if sliding_window_length is None or sliding_window_length > diff:
        return diff
    return sliding_window_length


class QuantileStatMap:
    """Registry of quantile stats, each exported under several counter names.

    ``clock`` returns the current time in seconds; it defaults to
    ``time.monotonic``. With ``legacy_use_count_for_rate`` rates are computed
    from the sample count instead of the sum.
    """

    def __init__(
        self,
        clock: Optional[Callable[[], float]] = None,
        legacy_use_count_for_rate: bool = False,
    ) -> None:
        self._clock = clock if clock is not None else time.monotonic
        self._legacy = legacy_use_count_for_rate
        self._counters: CachedKeyMap[_CounterMapEntry] = CachedKeyMap()
        self._bases: dict[str, _StatMapEntry] = {}

    def _extract(self, stat_def: StatDef, estimate: QuantileEstimates, duration: int) -> int:
        return extract_value(stat_def, estimate, duration, self._legacy)

    def get_value(self, key: str) -> Optional[int]:
        """Value of one fully qualified counter, or None if unknown."""
        entry = self._counters.get(key)
        if entry is None:
            return None
        quantiles = (
            [entry.stat_def.quantile]
            if entry.stat_def.type == ExportType.PERCENT
            else []
        )
        now = self._clock()
        estimates = entry.stat.get_estimates(quantiles, now)
        estimate: Optional[QuantileEstimates] = None
        if entry.sliding_window_length is not None:
            for window in estimates.sliding_windows:
                if window.sliding_window_length == entry.sliding_window_length:
                    estimate = window.estimate
                    break
        else:
            estimate = estimates.all_time_estimate
        if estimate is None:
            return None
        duration = stat_duration(
            entry.sliding_window_length, entry.stat.creation_time(), now
        )
        return self._extract(entry.stat_def, estimate, duration)

    def _add_values(
        self,
        stat_name: str,
        stat_def: StatDef,
        estimates: Estimates,
        time_since_creation: int,
        out: dict,
    ) -> None:
        out.setdefault(
            make_key(stat_name, stat_def),
            self._extract(stat_def, estimates.all_time_estimate, time_since_creation),
        )
        for window in estimates.sliding_windows:
            length = window.sliding_window_length
            duration = min(length, time_since_creation)
            out.setdefault(
                make_key(stat_name, stat_def, length),
                self._extract(stat_def, window.estimate, duration),
            )

    def get_values(self) -> dict[str, int]:
        """Values of every counter, sorted by name."""
        now = self._clock()
        out: dict[str, int] = {}
        with self._counters.lock:
            bases = list(self._bases.items())
        for name, entry in bases:
            quantiles = [
                d.quantile for d in entry.stat_defs if d.type == ExportType.PERCENT
            ]
            estimates = entry.stat.get_estimates(quantiles, now)
            since = int(now - entry.stat.creation_time())
            for stat_def in entry.stat_defs:
                self._add_values(name, stat_def, estimates, since, out)
        return dict(sorted(out.items()))

    def get_selected_values(self, keys: Sequence[str]) -> dict[str, int]:
        """Values of the named counters that exist, sorted by name."""
        groups: dict[int, tuple[QuantileStat, list]] = {}
        with self._counters.lock:
            for key in keys:
                entry = self._counters.get(key)
                if entry is not None:
                    groups.setdefault(id(entry.stat), (entry.stat, []))[1].append(
                        (key, entry)
                    )
        now = self._clock()
        out: dict[str, int] = {}
        for stat, selected in groups.values():
            quantiles = [
                e.stat_def.quantile
                for _, e in selected
                if e.stat_def.type == ExportType.PERCENT
            ]
            estimates = stat.get_estimates(quantiles, now)
            since = int(now - stat.creation_time())
            for key, entry in selected:
                if entry.sliding_window_length is not None:
                    for window in estimates.sliding_windows:
                        length = window.sliding_window_length
                        if length == entry.sliding_window_length:
                            out[key] = self._extract(
                                entry.stat_def, window.estimate, min(length, since)
                            )
                            break
                else:
                    out[key] = self._extract(
                        entry.stat_def, estimates.all_time_estimate, since
                    )
        return dict(sorted(out.items()))

    def get(self, name: str) -> Optional[QuantileStat]:
        """The stat registered under base name ``name``, or None."""
        with self._counters.lock:
            entry = self._bases.get(name)
            return None if entry is None else entry.stat

    def __contains__(self, name: object) -> bool:
        return name in self._counters

    def __len__(self) -> int:
        return len(self._counters)

    def get_keys(self) -> list[str]:
        return list(self._counters)

    def get_regex_keys(self, regex: str, now: Optional[float] = None) -> list[str]:
        """Counter names that ``regex`` matches in full."""
        return self._counters.find_matches(regex, now)

    def get_snapshot_entry(
        self, name: str, now: Optional[float] = None
    ) -> Optional[SnapshotEntry]:
        """Snapshot of the stat registered under ``name``, or None."""
        if now is None:
            now = self._clock()
        with self._counters.lock:
            entry = self._bases.get(name)
            if entry is None:
                return None
            return SnapshotEntry(
                name=name,
                snapshot=entry.stat.get_snapshot(now),
                stat_defs=list(entry.stat_defs),
            )

    def register_quantile_stat(
        self, name: str, stat: QuantileStat, stat_defs: Sequence[StatDef]
    ) -> QuantileStat:
        """Register ``stat`` under ``name``; return the stat already there if any."""
        with self._counters.lock:
            existing = self._bases.get(name)
            if existing is not None:
                return existing.stat
            lengths = stat.get_sliding_window_lengths()
            for stat_def in stat_defs:
                candidates = [(make_key(name, stat_def), None)] + [
                    (make_key(name, stat_def, length), length) for length in lengths
                ]
                for key, length in candidates:
                    if key not in self._counters:
                        self._counters.add(key, _CounterMapEntry(stat, stat_def, length))
            self._bases[name] = _StatMapEntry(stat, list(stat_defs))
            return stat

    def flush_all(self) -> None:
        """Flush the buffered values of every registered stat."""
        with self._counters.lock:
            stats = {id(e.stat): e.stat for e in self._counters.values()}
        for stat in stats.values():
            stat.flush()

    def forget_all(self) -> None:
        with self._counters.lock:
            self._counters.clear()
            self._bases.clear()

    def trim_regex_cache(self, expiry: float) -> None:
        self._counters.trim_stale(expiry)