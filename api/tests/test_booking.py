from datetime import time, timedelta
from decimal import Decimal
from unittest.mock import patch

from django.test import TestCase
from rest_framework.exceptions import ValidationError

from api.exceptions import InvalidTransition, NotAuthorized, SlotTaken
from api.models import ActionToken, AddOn, Appointment, BlacklistedCustomer, NotificationJob, PromoCode, VipSettings
from api.utils.booking import (
    BookingDraft,
    book,
    cancel_appointment,
    cancel_with_token,
    complete_appointment,
    reschedule_appointment,
)
from api.tests.factories import (
    MONDAY,
    make_admin,
    make_appointment,
    make_barber,
    make_service,
    make_user,
    upcoming,
)
from payments.models import Payment


class BookingTestMixin:
    def setUp(self):
        self.service = make_service(regular="30.00", vip="25.00")
        self.barber = make_barber(services=[self.service])
        self.day = upcoming(MONDAY)

    def draft(self, **overrides):
        values = dict(
            service=self.service,
            barber=self.barber,
            date=self.day,
            time=time(10, 0),
            guest_name="Sam Guest",
            guest_email="sam@example.com",
        )
        values.update(overrides)
        return BookingDraft(**values)


class BookTests(BookingTestMixin, TestCase):
    def test_booking_creates_appointment_payment_jobs_and_tokens(self):
        appt = book(self.draft())

        self.assertTrue(appt.confirmation_number.startswith("BB-"))
        self.assertEqual(appt.status, "pending")
        self.assertEqual(appt.payment_status, "pending")
        self.assertEqual(appt.payment_amount, Decimal("30.00"))
        self.assertEqual(appt.duration_minutes, 30)

        payment = Payment.objects.get(appointment=appt)
        self.assertEqual(payment.amount_cents, 3000)
        self.assertEqual(payment.status, "pending")

        templates = sorted(NotificationJob.objects.filter(appointment=appt).values_list("template", flat=True))
        # guest gave no phone: e-mail only
        self.assertEqual(templates, ["confirmation", "reminder_24h", "reminder_2h"])

        actions = sorted(ActionToken.objects.filter(appointment=appt).values_list("action", flat=True))
        self.assertEqual(actions, ["cancel", "reschedule"])

    def test_same_slot_twice_raises_slot_taken(self):
        book(self.draft())
        for _ in range(3):
            with self.assertRaises(SlotTaken):
                book(self.draft(guest_email="other@example.com"))
        self.assertEqual(Appointment.objects.filter(date=self.day, time=time(10, 0)).count(), 1)

    def test_overlapping_start_raises_slot_taken(self):
        book(self.draft())
        with self.assertRaises(SlotTaken):
            book(self.draft(time=time(10, 15)))

    def test_constraint_catches_race_past_availability_check(self):
        book(self.draft())
        # Simulate a competing request that read availability before the first commit
        with patch("api.utils.booking.free_barbers_at", return_value=[self.barber.id]):
            with self.assertRaises(SlotTaken):
                book(self.draft(guest_email="late@example.com"))
        self.assertEqual(Appointment.objects.count(), 1)

    def test_cancelled_slot_can_be_rebooked(self):
        first = book(self.draft())
        cancel_appointment(first)
        second = book(self.draft())
        self.assertNotEqual(first.pk, second.pk)

    def test_off_grid_start_raises_slot_taken(self):
        with self.assertRaises(SlotTaken):
            book(self.draft(time=time(10, 7)))
        self.assertFalse(Appointment.objects.exists())

    def test_off_grid_start_cannot_sidestep_booked_slot(self):
        book(self.draft())
        with self.assertRaises(SlotTaken):
            book(self.draft(time=time(10, 7), guest_email="other@example.com"))
        self.assertEqual(Appointment.objects.count(), 1)

    def test_blacklisted_email_is_refused(self):
        BlacklistedCustomer.objects.create(email_norm=" Banned@Example.com ", reason="No-shows")
        with self.assertRaises(ValidationError):
            book(self.draft(guest_email="BANNED@example.com"))
        self.assertFalse(Appointment.objects.exists())

    def test_blacklisted_phone_matches_on_digits(self):
        BlacklistedCustomer.objects.create(phone_norm="+1 (415) 555-2671")
        with self.assertRaises(ValidationError):
            book(self.draft(guest_email=None, guest_phone="14155552671"))

    def test_blacklist_applies_to_registered_customers(self):
        customer = make_user(email="banned@example.com")
        BlacklistedCustomer.objects.create(email_norm="banned@example.com")
        with self.assertRaises(ValidationError):
            book(self.draft(customer=customer, guest_name=None, guest_email=None))

    def test_unrelated_blacklist_entry_does_not_block(self):
        BlacklistedCustomer.objects.create(email_norm="someone@example.com")
        self.assertIsNotNone(book(self.draft()).pk)

    def test_outside_hours_raises_slot_taken(self):
        with self.assertRaises(SlotTaken):
            book(self.draft(time=time(18, 0)))

    def test_past_time_is_rejected(self):
        with self.assertRaises(ValidationError):
            book(self.draft(date=upcoming(MONDAY) - timedelta(weeks=2)))

    def test_guest_needs_contact(self):
        with self.assertRaises(ValidationError):
            book(self.draft(guest_email=None, guest_phone=None))
        with self.assertRaises(ValidationError):
            book(self.draft(guest_name=None))

    def test_registered_customer_needs_no_guest_fields(self):
        customer = make_user(name="Pat Client")
        appt = book(self.draft(customer=customer, guest_name=None, guest_email=None))
        self.assertEqual(appt.customer, customer)
        self.assertEqual(appt.contact_email, customer.email)

    def test_vip_booking_is_confirmed_without_payment(self):
        VipSettings.objects.create(pk=1, enabled=True, vip_code="GOLD")
        appt = book(self.draft(vip_code="GOLD"))

        self.assertTrue(appt.vip_applied)
        self.assertEqual(appt.status, "confirmed")
        self.assertEqual(appt.payment_status, "none")
        self.assertEqual(appt.payment_amount, Decimal("25.00"))
        self.assertFalse(Payment.objects.filter(appointment=appt).exists())

    def test_invalid_vip_code_books_nothing(self):
        VipSettings.objects.create(pk=1, enabled=True, vip_code="GOLD")
        with self.assertRaises(ValidationError):
            book(self.draft(vip_code="NOPE"))
        self.assertFalse(Appointment.objects.exists())

    def test_promo_and_addons(self):
        PromoCode.objects.create(code="TEN", discount_percent=10)
        beard = AddOn.objects.create(name="Beard", regular_price=Decimal("10.00"))

        appt = book(self.draft(add_ons=[beard], promo_code="ten"))

        self.assertEqual(appt.payment_amount, Decimal("36.00"))
        self.assertEqual(list(appt.add_ons.all()), [beard])
        self.assertEqual(appt.payment.amount_cents, 3600)

    def test_any_barber_goes_to_least_busy(self):
        other = make_barber("Barber 2", services=[self.service])
        make_appointment(self.barber, self.service, self.day, "15:00")

        appt = book(self.draft(barber=None))
        self.assertEqual(appt.barber, other)

    def test_any_barber_all_busy(self):
        book(self.draft())
        with self.assertRaises(SlotTaken):
            book(self.draft(barber=None))


class LifecycleTests(BookingTestMixin, TestCase):
    def setUp(self):
        super().setUp()
        self.customer = make_user(name="Pat Client")
        self.appt = book(self.draft(customer=self.customer, guest_name=None, guest_email=None))

    def test_owner_can_cancel(self):
        cancel_appointment(self.appt, by=self.customer)
        self.appt.refresh_from_db()
        self.assertEqual(self.appt.status, "cancelled")
        self.assertTrue(NotificationJob.objects.filter(appointment=self.appt, template="canceled").exists())
        self.assertFalse(
            NotificationJob.objects.filter(appointment=self.appt, template="reminder_24h", status="queued").exists()
        )

    def test_stranger_cannot_cancel(self):
        stranger = make_user(email="stranger@example.com")
        with self.assertRaises(NotAuthorized):
            cancel_appointment(self.appt, by=stranger)

    def test_cancel_twice(self):
        cancel_appointment(self.appt)
        with self.assertRaises(InvalidTransition):
            cancel_appointment(self.appt)

    def test_reschedule_moves_and_frees_old_slot(self):
        appt = reschedule_appointment(self.appt, self.day, time(14, 0))
        self.assertEqual(appt.time, time(14, 0))
        self.assertTrue(NotificationJob.objects.filter(appointment=appt, template="rescheduled").exists())

        # Old start is bookable again
        book(self.draft(guest_email="next@example.com"))

    def test_reschedule_to_overlapping_own_slot_is_allowed(self):
        appt = reschedule_appointment(self.appt, self.day, time(10, 15))
        self.assertEqual(appt.time, time(10, 15))

    def test_reschedule_off_grid(self):
        with self.assertRaises(SlotTaken):
            reschedule_appointment(self.appt, self.day, time(14, 7))
        self.appt.refresh_from_db()
        self.assertEqual(self.appt.time, time(10, 0))

    def test_reschedule_into_taken_slot(self):
        book(self.draft(time=time(14, 0), guest_email="b@example.com"))
        with self.assertRaises(SlotTaken):
            reschedule_appointment(self.appt, self.day, time(14, 0))
        self.appt.refresh_from_db()
        self.assertEqual(self.appt.time, time(10, 0))

    def test_reschedule_cancelled(self):
        cancel_appointment(self.appt)
        self.appt.refresh_from_db()
        with self.assertRaises(InvalidTransition):
            reschedule_appointment(self.appt, self.day, time(14, 0))

    def test_complete_is_admin_only(self):
        with self.assertRaises(NotAuthorized):
            complete_appointment(self.appt, by=self.customer)

        appt = complete_appointment(self.appt, by=make_admin())
        self.assertEqual(appt.status, "completed")
        with self.assertRaises(InvalidTransition):
            cancel_appointment(appt)

    def test_cancel_with_token(self):
        token = ActionToken.objects.get(appointment=self.appt, action="cancel")
        appt = cancel_with_token(token.token)
        self.assertEqual(appt.status, "cancelled")
        token.refresh_from_db()
        self.assertIsNotNone(token.used_at)
