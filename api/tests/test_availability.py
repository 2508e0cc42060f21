from datetime import datetime, time, timedelta
from itertools import islice

from django.test import TestCase
from django.utils import timezone

from api.models import AvailabilityOverride, AvailabilityWindow, DayOff
from api.utils.availability import (
    Interval,
    SlotCriteria,
    ceil_to_interval,
    find_slots,
    free_barbers_at,
    merge_intervals,
    on_grid,
    overlaps,
    select_best_barber,
    slot_starts,
    split_by_day,
    subtract_intervals,
    weekday_index,
)
from api.tests.factories import MONDAY, make_appointment, make_barber, make_service, upcoming


class IntervalHelperTests(TestCase):
    def test_overlaps_is_half_open(self):
        self.assertTrue(overlaps(600, 630, 615, 645))
        self.assertFalse(overlaps(600, 630, 630, 660))
        self.assertFalse(overlaps(630, 660, 600, 630))

    def test_ceil_to_interval(self):
        self.assertEqual(ceil_to_interval(545, 15), 555)
        self.assertEqual(ceil_to_interval(540, 15), 540)
        self.assertEqual(ceil_to_interval(541, 30), 570)

    def test_merge_intervals_joins_touching_and_overlapping(self):
        merged = merge_intervals([Interval(600, 660), Interval(540, 600), Interval(650, 700), Interval(800, 900)])
        self.assertEqual(merged, [Interval(540, 700), Interval(800, 900)])

    def test_subtract_intervals(self):
        free = subtract_intervals(
            [Interval(540, 1020)],
            [Interval(600, 630), Interval(720, 780)],
        )
        self.assertEqual(free, [Interval(540, 600), Interval(630, 720), Interval(780, 1020)])

    def test_subtract_removal_covering_everything(self):
        self.assertEqual(subtract_intervals([Interval(540, 600)], [Interval(500, 700)]), [])

    def test_slot_starts_stay_on_clock_grid(self):
        starts = list(slot_starts([Interval(545, 640)], 30, 15))
        # 09:15, 09:30, 09:45, 10:00 (10:00 + 30 = 10:30 <= 10:40)
        self.assertEqual(starts, [555, 570, 585, 600])

    def test_on_grid(self):
        self.assertTrue(on_grid(time(10, 15), 15))
        self.assertTrue(on_grid(time(10, 30), 30))
        self.assertFalse(on_grid(time(10, 7), 15))
        self.assertFalse(on_grid(time(10, 15), 30))
        self.assertFalse(on_grid(time(10, 15, 30), 15))

    def test_split_by_day_crosses_midnight(self):
        start = timezone.make_aware(datetime(2026, 10, 19, 22, 0))
        end = timezone.make_aware(datetime(2026, 10, 20, 1, 30))
        self.assertEqual(list(split_by_day(start, end)), [
            (start.date(), Interval(22 * 60, 24 * 60)),
            (end.date(), Interval(0, 90)),
        ])

    def test_weekday_index_counts_from_sunday(self):
        sunday = datetime(2026, 10, 18).date()
        self.assertEqual(weekday_index(sunday), 0)
        self.assertEqual(weekday_index(sunday + timedelta(days=1)), 1)
        self.assertEqual(weekday_index(sunday + timedelta(days=6)), 6)


class FindSlotsTests(TestCase):
    def setUp(self):
        self.service = make_service(duration=30)
        self.barber = make_barber(services=[self.service])
        self.day = upcoming(MONDAY)

    def _criteria(self, **overrides):
        values = dict(
            barber_id=self.barber.id,
            service_duration_minutes=30,
            range_start=self.day,
            range_end=self.day,
            granularity_minutes=30,
        )
        values.update(overrides)
        return SlotCriteria(**values)

    def _times(self, criteria):
        return [c.time for c in find_slots(criteria)]

    def test_booked_start_is_not_offered(self):
        make_appointment(self.barber, self.service, self.day, "10:00")

        times = self._times(self._criteria())

        self.assertEqual(times[0], time(9, 0))
        self.assertIn(time(9, 30), times)
        self.assertNotIn(time(10, 0), times)
        self.assertIn(time(10, 30), times)
        self.assertEqual(times[-1], time(16, 30))
        self.assertEqual(len(times), 15)

    def test_cancelled_appointments_release_their_slot(self):
        make_appointment(self.barber, self.service, self.day, "10:00", status="cancelled")
        self.assertIn(time(10, 0), self._times(self._criteria()))

    def test_longer_appointment_blocks_overlapping_starts(self):
        make_appointment(self.barber, self.service, self.day, "10:00", duration_minutes=60)
        times = self._times(self._criteria())
        self.assertNotIn(time(10, 0), times)
        self.assertNotIn(time(10, 30), times)
        self.assertIn(time(11, 0), times)

    def test_break_is_excluded(self):
        AvailabilityWindow.objects.create(
            barber=self.barber, day_of_week=MONDAY,
            start_time=time(12, 0), end_time=time(13, 0), is_available=False,
        )
        times = self._times(self._criteria())
        self.assertIn(time(11, 30), times)
        self.assertNotIn(time(12, 0), times)
        self.assertNotIn(time(12, 30), times)
        self.assertIn(time(13, 0), times)

    def test_day_off_yields_nothing(self):
        DayOff.objects.create(barber=self.barber, date=self.day)
        self.assertEqual(self._times(self._criteria()), [])

    def test_days_without_windows_are_skipped(self):
        criteria = self._criteria(range_start=self.day - timedelta(days=1), range_end=self.day + timedelta(days=1))
        days = {c.date for c in find_slots(criteria)}
        self.assertEqual(days, {self.day})

    def test_inverted_range_yields_nothing(self):
        criteria = self._criteria(range_start=self.day, range_end=self.day - timedelta(days=1))
        self.assertEqual(list(find_slots(criteria)), [])

    def test_slot_must_end_inside_window(self):
        times = self._times(self._criteria(service_duration_minutes=45, granularity_minutes=15))
        self.assertEqual(times[-1], time(16, 15))

    def test_results_are_lazy_and_restartable(self):
        criteria = self._criteria()
        first = list(islice(find_slots(criteria), 3))
        again = list(islice(find_slots(criteria), 3))
        self.assertEqual(first, again)
        self.assertEqual([c.time for c in first], [time(9, 0), time(9, 30), time(10, 0)])

    def test_not_before_drops_earlier_starts(self):
        cutoff = timezone.make_aware(datetime.combine(self.day, time(11, 0)))
        times = self._times(self._criteria(not_before=cutoff))
        self.assertEqual(times[0], time(11, 30))

    def test_exclude_appointment_frees_its_own_slot(self):
        appt = make_appointment(self.barber, self.service, self.day, "10:00")
        times = self._times(self._criteria(exclude_appointment_id=appt.pk))
        self.assertIn(time(10, 0), times)

    def test_barber_not_offering_service_is_ignored(self):
        other = make_service(name="Shave")
        self.assertEqual(self._times(self._criteria(service_id=other.id)), [])


class AnyBarberTests(TestCase):
    def setUp(self):
        self.service = make_service(duration=30)
        self.day = upcoming(MONDAY)
        self.b1 = make_barber("B1", services=[self.service], hours=((MONDAY, "09:00", "11:00"),))
        self.b2 = make_barber("B2", services=[self.service], hours=((MONDAY, "10:00", "12:00"),))

    def test_union_of_barbers(self):
        criteria = SlotCriteria(
            barber_id=None, service_duration_minutes=30,
            range_start=self.day, range_end=self.day,
            granularity_minutes=30, service_id=self.service.id,
        )
        slots = {c.time: c.barber_ids for c in find_slots(criteria)}

        self.assertEqual(slots[time(9, 0)], (self.b1.id,))
        self.assertEqual(slots[time(10, 0)], (self.b1.id, self.b2.id))
        self.assertEqual(slots[time(11, 30)], (self.b2.id,))
        self.assertNotIn(time(12, 0), slots)

    def test_free_barbers_at(self):
        make_appointment(self.b1, self.service, self.day, "10:00")
        self.assertEqual(free_barbers_at(self.day, time(10, 0), 30, service_id=self.service.id), [self.b2.id])
        self.assertEqual(free_barbers_at(self.day, time(10, 15), 30, service_id=self.service.id), [self.b2.id])
        self.assertEqual(free_barbers_at(self.day, time(12, 0), 30, service_id=self.service.id), [])

    def test_select_best_barber_prefers_lighter_day(self):
        self.assertEqual(select_best_barber([self.b1.id, self.b2.id], self.day), self.b1.id)

        make_appointment(self.b1, self.service, self.day, "09:00")
        self.assertEqual(select_best_barber([self.b1.id, self.b2.id], self.day), self.b2.id)

    def test_select_best_barber_empty(self):
        self.assertIsNone(select_best_barber([], self.day))


class AvailabilityOverrideTests(TestCase):
    def setUp(self):
        self.service = make_service(duration=30)
        self.barber = make_barber(services=[self.service])
        self.day = upcoming(MONDAY)

    def _override(self, day, start, end, kind):
        return AvailabilityOverride.objects.create(
            barber=self.barber,
            start_at=timezone.make_aware(datetime.combine(day, time.fromisoformat(start))),
            end_at=timezone.make_aware(datetime.combine(day, time.fromisoformat(end))),
            kind=kind,
        )

    def _times(self, day):
        criteria = SlotCriteria(
            barber_id=self.barber.id, service_duration_minutes=30,
            range_start=day, range_end=day, granularity_minutes=30,
        )
        return [c.time for c in find_slots(criteria)]

    def test_closed_override_blocks_time(self):
        self._override(self.day, "13:00", "15:00", "closed")
        times = self._times(self.day)
        self.assertIn(time(12, 30), times)
        self.assertNotIn(time(13, 0), times)
        self.assertNotIn(time(14, 30), times)
        self.assertIn(time(15, 0), times)

    def test_open_override_adds_time_on_a_day_without_hours(self):
        sunday = self.day - timedelta(days=1)
        self.assertEqual(self._times(sunday), [])

        self._override(sunday, "10:00", "12:00", "open")
        self.assertEqual(self._times(sunday), [time(10, 0), time(10, 30), time(11, 0), time(11, 30)])

    def test_open_override_extends_weekly_hours(self):
        self._override(self.day, "17:00", "19:00", "open")
        times = self._times(self.day)
        self.assertIn(time(16, 30), times)
        self.assertEqual(times[-1], time(18, 30))

    def test_open_override_still_respects_bookings(self):
        sunday = self.day - timedelta(days=1)
        self._override(sunday, "10:00", "11:00", "open")
        make_appointment(self.barber, self.service, sunday, "10:00")
        self.assertEqual(self._times(sunday), [time(10, 30)])

    def test_day_off_wins_over_open_override(self):
        self._override(self.day, "18:00", "19:00", "open")
        DayOff.objects.create(barber=self.barber, date=self.day)
        self.assertEqual(self._times(self.day), [])

    def test_overrides_change_booking_checks(self):
        self._override(self.day, "10:00", "11:00", "closed")
        self.assertEqual(free_barbers_at(self.day, time(10, 0), 30), [])
        self.assertEqual(free_barbers_at(self.day, time(11, 0), 30), [self.barber.id])
