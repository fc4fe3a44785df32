"""Worker availability resolution into concrete free intervals."""

from __future__ import annotations

import bisect
from collections.abc import Iterable, Iterator
from dataclasses import dataclass
from datetime import date, datetime, time, timedelta, timezone, tzinfo

from diyplan.logger import debug_enabled, get_logger
from diyplan.resources import EVENING_START, SiteConstraints, Worker, is_weekend

from .config import SchedulingConfig

logger = get_logger()

HOUR = timedelta(hours=1)
UTC = timezone.utc


@dataclass(frozen=True, order=True)
class Interval:
    """Half-open time interval [start, end).

    The resolver and assigner keep intervals in UTC so that lengths are real
    elapsed time on days when the local clock jumps.
    """

    start: datetime
    end: datetime

    @property
    def duration(self) -> timedelta:
        return self.end - self.start

    @property
    def hours(self) -> float:
        return self.duration / HOUR

    def __str__(self) -> str:
        return f"{self.start:%Y-%m-%d %H:%M}-{self.end:%H:%M}"


class IntervalSet:
    """Free time for one worker as sorted, non-overlapping intervals.

    Overlapping or touching intervals are merged on construction, so lookups can
    use binary search on start times. Each scheduling run owns its sets; nothing
    is shared between runs.
    """

    def __init__(self, intervals: Iterable[Interval] | None = None) -> None:
        self._intervals: list[Interval] = self._merge(intervals or [])

    @staticmethod
    def _merge(intervals: Iterable[Interval]) -> list[Interval]:
        """Drop empty intervals and merge the rest into a sorted list."""
        ordered = sorted(iv for iv in intervals if iv.end > iv.start)
        merged: list[Interval] = []
        for interval in ordered:
            if merged and interval.start <= merged[-1].end:
                last = merged[-1]
                merged[-1] = Interval(last.start, max(last.end, interval.end))
            else:
                merged.append(interval)
        return merged

    def __iter__(self) -> Iterator[Interval]:
        return iter(list(self._intervals))

    def __len__(self) -> int:
        return len(self._intervals)

    def __bool__(self) -> bool:
        return bool(self._intervals)

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, IntervalSet):
            return NotImplemented
        return self._intervals == other._intervals

    def __repr__(self) -> str:
        return f"IntervalSet({', '.join(str(iv) for iv in self._intervals)})"

    @property
    def intervals(self) -> list[Interval]:
        return list(self._intervals)

    def copy(self) -> IntervalSet:
        new_set = IntervalSet()
        new_set._intervals = list(self._intervals)
        return new_set

    def total_hours(self) -> float:
        return sum(iv.hours for iv in self._intervals)

    def longest(self) -> timedelta:
        """Length of the longest single interval (zero if empty)."""
        return max((iv.duration for iv in self._intervals), default=timedelta(0))

    def clip(self, start: datetime, end: datetime) -> IntervalSet:
        """Return the part of this set inside [start, end)."""
        clipped = [
            Interval(max(iv.start, start), min(iv.end, end))
            for iv in self._intervals
            if iv.end > start and iv.start < end
        ]
        return IntervalSet(clipped)

    def starting_from(self, moment: datetime) -> list[Interval]:
        """Intervals trimmed so none starts before ``moment``."""
        idx = bisect.bisect_right(self._intervals, moment, key=lambda iv: iv.end)
        result: list[Interval] = []
        for interval in self._intervals[idx:]:
            start = max(interval.start, moment)
            if interval.end > start:
                result.append(Interval(start, interval.end))
        return result

    def intersect(self, other: IntervalSet) -> IntervalSet:
        """Time present in both sets."""
        result: list[Interval] = []
        i = j = 0
        mine, theirs = self._intervals, other._intervals
        while i < len(mine) and j < len(theirs):
            start = max(mine[i].start, theirs[j].start)
            end = min(mine[i].end, theirs[j].end)
            if end > start:
                result.append(Interval(start, end))
            if mine[i].end < theirs[j].end:
                i += 1
            else:
                j += 1
        return IntervalSet(result)

    def remove(self, start: datetime, end: datetime) -> None:
        """Remove [start, end) in place, splitting intervals as needed."""
        if end <= start:
            return
        idx = bisect.bisect_right(self._intervals, start, key=lambda iv: iv.end)
        replacement: list[Interval] = []
        stop = idx
        while stop < len(self._intervals) and self._intervals[stop].start < end:
            interval = self._intervals[stop]
            if interval.start < start:
                replacement.append(Interval(interval.start, start))
            if interval.end > end:
                replacement.append(Interval(end, interval.end))
            stop += 1
        self._intervals[idx:stop] = replacement

    def subtract(self, other: Iterable[Interval]) -> IntervalSet:
        """Return a copy with every interval in ``other`` removed."""
        result = self.copy()
        for interval in other:
            result.remove(interval.start, interval.end)
        return result


def localize(moment: datetime, tz: tzinfo) -> datetime:
    """Attach ``tz`` to naive datetimes and convert aware ones into it."""
    if moment.tzinfo is None:
        return moment.replace(tzinfo=tz)
    return moment.astimezone(tz)


def to_utc(moment: datetime, tz: tzinfo) -> datetime:
    """``moment`` localized to ``tz`` (when naive) and converted to UTC."""
    return localize(moment, tz).astimezone(UTC)


class AvailabilityResolver:
    """Computes concrete free intervals for workers within a planning horizon.

    For every calendar day the candidate window is the worker's working hours
    clipped to the site hours for that day type, then narrowed by the recurring
    filters (weekends only, weekday evenings only). The daily windows are then
    intersected with the worker's explicit availability, and blackout days and
    quiet hours are removed.
    """

    def __init__(  # noqa: PLR0913 - keyword-only parameters mirror the request bundle
        self,
        *,
        site_constraints: SiteConstraints,
        blackout_dates: Iterable[date],
        tz: tzinfo,
        anchor: datetime,
        config: SchedulingConfig | None = None,
    ) -> None:
        """Initialize the resolver.

        Args:
            site_constraints: Site-wide hours and quiet hours
            blackout_dates: Days on which nobody works
            tz: Timezone that working hours and naive datetimes are read in
            anchor: "Now" for this run; default availability starts here
            config: Scheduling configuration (default availability length)
        """
        self.site = site_constraints
        self.blackout_dates = set(blackout_dates)
        self.tz = tz
        self.anchor = to_utc(anchor, tz)
        self.config = config or SchedulingConfig()

    def _at(self, day: date, moment: time | None) -> datetime:
        """UTC instant of local ``moment`` on ``day``; ``None`` means the following midnight."""
        if moment is None:
            day, moment = day + timedelta(days=1), time(0, 0)
        return datetime.combine(day, moment, tzinfo=self.tz).astimezone(UTC)

    def day_window(self, worker: Worker, day: date) -> Interval | None:
        """Recurring candidate window for ``worker`` on ``day``, before explicit windows."""
        if day in self.blackout_dates:
            return None

        weekend = is_weekend(day)
        if not weekend and (self.site.weekends_only or worker.weekends_only):
            return None

        site_hours = self.site.hours_for(day)
        start = max(worker.working_hours.start, site_hours.start)
        end = min(worker.working_hours.end, site_hours.end)
        if worker.weekdays_after_five_pm and not weekend:
            start = max(start, EVENING_START)

        if end <= start:
            return None
        return Interval(self._at(day, start), self._at(day, end))

    def quiet_intervals(self, day: date) -> list[Interval]:
        """Quiet-hour intervals falling on ``day``."""
        return [
            Interval(self._at(day, quiet_start), self._at(day, quiet_end))
            for quiet_start, quiet_end in self.site.quiet_windows()
        ]

    def explicit_availability(self, worker: Worker) -> IntervalSet:
        """Worker's explicit windows, or the default window from the anchor."""
        windows = worker.explicit_windows()
        if windows is None:
            default_end = self.anchor + timedelta(days=self.config.default_availability_days)
            return IntervalSet([Interval(self.anchor, default_end)])
        return IntervalSet(
            Interval(to_utc(window.start, self.tz), to_utc(window.end, self.tz))
            for window in windows
        )

    def resolve(
        self, worker: Worker, horizon_start: datetime, horizon_end: datetime
    ) -> IntervalSet:
        """Resolve a worker's free intervals within [horizon_start, horizon_end).

        Args:
            worker: Worker to resolve
            horizon_start: Start of the planning horizon
            horizon_end: End of the planning horizon

        Returns:
            Sorted, non-overlapping free intervals in UTC (possibly empty)
        """
        first_day = localize(horizon_start, self.tz).date()
        last_day = localize(horizon_end, self.tz).date()
        horizon_start = to_utc(horizon_start, self.tz)
        horizon_end = to_utc(horizon_end, self.tz)

        daily: list[Interval] = []
        quiet: list[Interval] = []
        day = first_day
        while day <= last_day:
            window = self.day_window(worker, day)
            if window is not None:
                daily.append(window)
                quiet.extend(self.quiet_intervals(day))
            day += timedelta(days=1)

        free = (
            IntervalSet(daily)
            .intersect(self.explicit_availability(worker))
            .subtract(quiet)
            .clip(horizon_start, horizon_end)
        )

        if not free:
            logger.placement(f"Worker {worker.id} has no usable time in the planning horizon")
        elif debug_enabled():
            logger.debug(
                f"  Worker {worker.id}: {len(free)} free intervals, {free.total_hours():.1f}h total"
            )
        return free
