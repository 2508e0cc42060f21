import logging
from collections import defaultdict
from datetime import datetime, timedelta, time, date
from typing import Dict, Iterable, Iterator, List, NamedTuple, Optional, Sequence, Set, Tuple

from django.conf import settings
from django.db.models import Count, Q
from django.utils import timezone

from api.models import (
    ACTIVE_APPOINTMENT_STATUSES,
    Appointment, AvailabilityOverride, AvailabilityWindow, Barber, DayOff,
)

logger = logging.getLogger(__name__)

MINUTES_PER_DAY = 24 * 60

# ==========================================
# 1. Primitives & Helpers
# ==========================================

class Interval(NamedTuple):
    """Half-open [start, end) in minutes from midnight, business time zone."""
    start: int
    end: int


class SlotCriteria(NamedTuple):
    barber_id: Optional[int]  # None = any barber
    service_duration_minutes: int
    range_start: date
    range_end: date
    granularity_minutes: int = 15
    service_id: Optional[int] = None
    # Starts at or before this instant are never offered
    not_before: Optional[datetime] = None
    # Ignore this appointment's own claim (rescheduling)
    exclude_appointment_id: Optional[int] = None


class SlotCandidate(NamedTuple):
    date: date
    time: time
    barber_ids: Tuple[int, ...]


def overlaps(a_start: int, a_end: int, b_start: int, b_end: int) -> bool:
    """
    Check if two half-open intervals [a_start, a_end) and [b_start, b_end) overlap.
    Overlap exists if a_start < b_end AND b_start < a_end.
    """
    return a_start < b_end and b_start < a_end


def ceil_to_interval(minutes_from_midnight: int, interval_minutes: int) -> int:
    """
    Round up minutes-from-midnight to the next multiple of interval_minutes.
    Example: 545 (9:05), interval=15 -> 555 (9:15). 540 (9:00) -> 540.
    """
    if interval_minutes <= 0:
        return minutes_from_midnight

    remainder = minutes_from_midnight % interval_minutes
    if remainder == 0:
        return minutes_from_midnight
    return minutes_from_midnight + (interval_minutes - remainder)


def to_minutes(t: time) -> int:
    return t.hour * 60 + t.minute


def from_minutes(minutes_from_midnight: int) -> time:
    return time(minutes_from_midnight // 60, minutes_from_midnight % 60)


def weekday_index(date_obj: date) -> int:
    """0 = Sunday ... 6 = Saturday (Python's weekday() starts on Monday)."""
    return (date_obj.weekday() + 1) % 7


def daterange(start: date, end: date) -> Iterator[date]:
    current = start
    while current <= end:
        yield current
        current += timedelta(days=1)


# ==========================================
# 2. Interval Arithmetic
# ==========================================

def merge_intervals(intervals: Iterable[Interval]) -> List[Interval]:
    """Sort and coalesce overlapping or touching intervals. Empty ones are dropped."""
    merged: List[Interval] = []
    for iv in sorted(i for i in intervals if i.start < i.end):
        if merged and iv.start <= merged[-1].end:
            last = merged[-1]
            merged[-1] = Interval(last.start, max(last.end, iv.end))
        else:
            merged.append(iv)
    return merged


def subtract_intervals(base: Iterable[Interval], removals: Iterable[Interval]) -> List[Interval]:
    """
    base minus removals, both normalised first.
    Single sweep over the two ordered lists.
    """
    base = merge_intervals(base)
    removals = merge_intervals(removals)

    free: List[Interval] = []
    j = 0
    for iv in base:
        cursor = iv.start
        # Skip removals that end before this interval starts
        while j < len(removals) and removals[j].end <= cursor:
            j += 1

        k = j
        while k < len(removals) and removals[k].start < iv.end:
            r = removals[k]
            if r.start > cursor:
                free.append(Interval(cursor, r.start))
            cursor = max(cursor, r.end)
            if cursor >= iv.end:
                break
            k += 1

        if cursor < iv.end:
            free.append(Interval(cursor, iv.end))
    return free


def slot_starts(free: Sequence[Interval], duration_minutes: int, granularity_minutes: int) -> Iterator[int]:
    """
    Start minutes on the granularity clock grid such that
    start + duration <= end of the free sub-interval.
    """
    step = max(granularity_minutes, 1)
    for iv in free:
        current = ceil_to_interval(iv.start, step)
        while current + duration_minutes <= iv.end:
            yield current
            current += step


def fits(free: Sequence[Interval], start: int, duration_minutes: int) -> bool:
    end = start + duration_minutes
    return any(iv.start <= start and end <= iv.end for iv in free)


def split_by_day(start_at: datetime, end_at: datetime) -> Iterator[Tuple[date, Interval]]:
    """Cut an aware datetime range into per-day minute intervals in the business time zone."""
    local_start, local_end = timezone.localtime(start_at), timezone.localtime(end_at)
    for day in daterange(local_start.date(), local_end.date()):
        begin = to_minutes(local_start.time()) if day == local_start.date() else 0
        end = to_minutes(local_end.time()) if day == local_end.date() else MINUTES_PER_DAY
        if begin < end:
            yield day, Interval(begin, end)


def on_grid(start_time: time, granularity_minutes: Optional[int] = None) -> bool:
    """True when start_time falls on the booking clock grid (multiples of the granularity from midnight)."""
    step = granularity_minutes or settings.BOOKING_SLOT_GRANULARITY_MINUTES
    return start_time.second == 0 and to_minutes(start_time) % step == 0


# ==========================================
# 3. Schedule Loading
# ==========================================

class BarberSchedule:
    """
    Windows, days off, admin overrides and claimed intervals for a set of barbers over a date range,
    read once per query.
    """

    def __init__(self, barber_ids: Sequence[int], start: date, end: date, exclude_appointment_id: Optional[int] = None):
        self.windows: Dict[Tuple[int, int], List[Interval]] = defaultdict(list)
        self.breaks: Dict[Tuple[int, int], List[Interval]] = defaultdict(list)
        self.days_off: Set[Tuple[int, date]] = set()
        self.opened: Dict[Tuple[int, date], List[Interval]] = defaultdict(list)
        self.closed: Dict[Tuple[int, date], List[Interval]] = defaultdict(list)
        self.claimed: Dict[Tuple[int, date], List[Interval]] = defaultdict(list)

        for w in AvailabilityWindow.objects.filter(barber_id__in=barber_ids):
            target = self.windows if w.is_available else self.breaks
            target[(w.barber_id, w.day_of_week)].append(Interval(to_minutes(w.start_time), to_minutes(w.end_time)))

        for barber_id, day in DayOff.objects.filter(
            barber_id__in=barber_ids, date__range=(start, end)
        ).values_list('barber_id', 'date'):
            self.days_off.add((barber_id, day))

        range_begin = timezone.make_aware(datetime.combine(start, time.min))
        range_finish = timezone.make_aware(datetime.combine(end + timedelta(days=1), time.min))
        for override in AvailabilityOverride.objects.filter(
            barber_id__in=barber_ids, start_at__lt=range_finish, end_at__gt=range_begin,
        ):
            target = self.opened if override.kind == "open" else self.closed
            for day, interval in split_by_day(override.start_at, override.end_at):
                target[(override.barber_id, day)].append(interval)

        appointments = Appointment.objects.filter(
            barber_id__in=barber_ids,
            date__range=(start, end),
            status__in=ACTIVE_APPOINTMENT_STATUSES,
        )
        if exclude_appointment_id:
            appointments = appointments.exclude(pk=exclude_appointment_id)

        for barber_id, day, start_time, duration in appointments.values_list(
            'barber_id', 'date', 'time', 'duration_minutes'
        ):
            begin = to_minutes(start_time)
            self.claimed[(barber_id, day)].append(Interval(begin, begin + duration))

    def free_intervals(self, barber_id: int, date_obj: date) -> List[Interval]:
        if (barber_id, date_obj) in self.days_off:
            return []
        dow = weekday_index(date_obj)
        key = (barber_id, date_obj)
        # Breaks only cut the weekly hours; an open override is taken as given
        open_time = subtract_intervals(self.windows.get((barber_id, dow), []), self.breaks.get((barber_id, dow), []))
        open_time = merge_intervals(open_time + self.opened.get(key, []))
        if not open_time:
            return []
        blocked = self.closed.get(key, []) + self.claimed.get(key, [])
        return subtract_intervals(open_time, blocked)


def eligible_barbers(barber_id: Optional[int], service_id: Optional[int] = None) -> List[int]:
    """Active barbers (offering the service, when given), ordered by id."""
    qs = Barber.objects.filter(is_active=True)
    if barber_id is not None:
        qs = qs.filter(pk=barber_id)
    if service_id is not None:
        qs = qs.filter(services__id=service_id)
    return list(qs.order_by('id').values_list('id', flat=True).distinct())


# ==========================================
# 4. Slot Search
# ==========================================

def find_slots(criteria: SlotCriteria) -> Iterator[SlotCandidate]:
    """
    Lazily yield bookable (date, time) candidates in chronological order.

    Every call reads current state again, so the same criteria over the same
    data always produce the same sequence. With barber_id=None a time is
    offered when at least one eligible barber is free; barber_ids lists all
    of them and the booking picks one later.
    """
    if criteria.range_end < criteria.range_start or criteria.service_duration_minutes <= 0:
        return

    barber_ids = eligible_barbers(criteria.barber_id, criteria.service_id)
    if not barber_ids:
        logger.debug("No eligible barbers for %s", criteria)
        return

    schedule = BarberSchedule(
        barber_ids, criteria.range_start, criteria.range_end,
        exclude_appointment_id=criteria.exclude_appointment_id,
    )

    cutoff_date, cutoff_minutes = None, None
    if criteria.not_before is not None:
        local_now = timezone.localtime(criteria.not_before)
        cutoff_date, cutoff_minutes = local_now.date(), to_minutes(local_now.time())

    for day in daterange(criteria.range_start, criteria.range_end):
        if cutoff_date is not None and day < cutoff_date:
            continue

        free_by_start: Dict[int, List[int]] = defaultdict(list)
        for barber_id in barber_ids:
            free = schedule.free_intervals(barber_id, day)
            for start in slot_starts(free, criteria.service_duration_minutes, criteria.granularity_minutes):
                free_by_start[start].append(barber_id)

        for start in sorted(free_by_start):
            if start >= MINUTES_PER_DAY:
                continue
            if day == cutoff_date and start <= cutoff_minutes:
                continue
            yield SlotCandidate(day, from_minutes(start), tuple(free_by_start[start]))


def free_barbers_at(
    date_obj: date,
    start_time: time,
    duration_minutes: int,
    barber_id: Optional[int] = None,
    service_id: Optional[int] = None,
    exclude_appointment_id: Optional[int] = None,
) -> List[int]:
    """Barbers whose free time fully contains [start_time, start_time + duration)."""
    barber_ids = eligible_barbers(barber_id, service_id)
    if not barber_ids:
        return []

    schedule = BarberSchedule(barber_ids, date_obj, date_obj, exclude_appointment_id=exclude_appointment_id)
    start = to_minutes(start_time)
    return [
        b for b in barber_ids
        if fits(schedule.free_intervals(b, date_obj), start, duration_minutes)
    ]


# ==========================================
# 5. Any Barber Selection
# ==========================================

def select_best_barber(candidate_ids: Sequence[int], date_obj: date) -> Optional[int]:
    """
    Pick a barber for an "any barber" booking using workload balancing.
    Primary: Fewest active appointments on that date.
    Secondary: Lowest ID (Deterministic).
    """
    if not candidate_ids:
        return None

    workload = dict(
        Barber.objects.filter(pk__in=candidate_ids)
        .annotate(n=Count(
            'appointments',
            filter=Q(appointments__date=date_obj, appointments__status__in=ACTIVE_APPOINTMENT_STATUSES),
        ))
        .values_list('id', 'n')
    )
    return min(candidate_ids, key=lambda b: (workload.get(b, 0), b))
