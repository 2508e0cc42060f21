from datetime import time

from django.test import TestCase
from django.urls import reverse
from rest_framework import status
from rest_framework.exceptions import NotFound, ValidationError
from rest_framework.test import APIClient, APITestCase

from api.exceptions import InvalidTransition, NotAuthorized
from api.models import NotificationJob, VipSettings
from api.utils.booking import BookingDraft, book, cancel_appointment
from api.tests.factories import MONDAY, make_admin, make_barber, make_service, make_user, upcoming
from payments.models import Payment
from payments.utils.verification import submit_payment, verify_payment


def _book(service, barber, day, **extra):
    values = dict(
        service=service, barber=barber, date=day, time=time(10, 0),
        guest_name="Sam Guest", guest_email="sam@example.com",
    )
    values.update(extra)
    return book(BookingDraft(**values))


class VerificationTests(TestCase):
    def setUp(self):
        self.service = make_service(regular="30.00")
        self.barber = make_barber(services=[self.service])
        self.day = upcoming(MONDAY)
        self.admin = make_admin()
        self.appt = _book(self.service, self.barber, self.day)

    def test_submit_fills_pending_payment(self):
        payment = submit_payment(self.appt, "zelle", 3000, reference="ZL-123")
        self.assertEqual(payment.status, "pending")
        self.assertEqual(payment.method, "zelle")
        self.assertEqual(payment.reference, "ZL-123")
        self.assertEqual(Payment.objects.filter(appointment=self.appt).count(), 1)

    def test_submit_validation(self):
        with self.assertRaises(ValidationError):
            submit_payment(self.appt, "venmo", 3000)
        with self.assertRaises(ValidationError):
            submit_payment(self.appt, "zelle", -1)

    def test_submit_for_cancelled_appointment(self):
        cancel_appointment(self.appt)
        self.appt.refresh_from_db()
        with self.assertRaises(InvalidTransition):
            submit_payment(self.appt, "zelle", 3000)

    def test_vip_appointment_needs_no_payment(self):
        VipSettings.objects.create(pk=1, enabled=True, vip_code="GOLD")
        vip = _book(self.service, self.barber, self.day, time=time(14, 0), vip_code="GOLD")
        with self.assertRaises(ValidationError):
            submit_payment(vip, "zelle", 0)

    def test_verify_confirms_and_notifies(self):
        payment = submit_payment(self.appt, "cash_app", 3000)
        payment = verify_payment(payment.pk, "verified", verified_by=self.admin, admin_notes="ok")

        self.assertEqual(payment.status, "verified")
        self.assertEqual(payment.verified_by, self.admin)
        self.assertIsNotNone(payment.verified_at)

        self.appt.refresh_from_db()
        self.assertEqual(self.appt.status, "confirmed")
        self.assertEqual(self.appt.payment_status, "paid")
        self.assertTrue(NotificationJob.objects.filter(appointment=self.appt, template="payment_verified").exists())

    def test_verified_is_final(self):
        payment = submit_payment(self.appt, "zelle", 3000)
        verify_payment(payment.pk, "verified", verified_by=self.admin)

        with self.assertRaises(InvalidTransition):
            verify_payment(payment.pk, "rejected", verified_by=self.admin)
        with self.assertRaises(InvalidTransition):
            submit_payment(self.appt, "zelle", 1)

        payment.refresh_from_db()
        self.assertEqual(payment.status, "verified")
        self.appt.refresh_from_db()
        self.assertEqual(self.appt.payment_status, "paid")

    def test_reject_marks_payment_failed(self):
        payment = submit_payment(self.appt, "apple_pay", 3000)
        verify_payment(payment.pk, "rejected", verified_by=self.admin)

        self.appt.refresh_from_db()
        self.assertEqual(self.appt.status, "pending")
        self.assertEqual(self.appt.payment_status, "failed")
        self.assertFalse(NotificationJob.objects.filter(appointment=self.appt, template="payment_verified").exists())

    def test_verifying_cancelled_appointment_sends_no_confirmation(self):
        payment = self.appt.payment
        cancel_appointment(self.appt)

        payment = verify_payment(payment.pk, "verified", verified_by=self.admin)

        self.assertEqual(payment.status, "verified")
        self.appt.refresh_from_db()
        self.assertEqual(self.appt.status, "cancelled")
        self.assertEqual(self.appt.payment_status, "paid")
        self.assertFalse(NotificationJob.objects.filter(appointment=self.appt, template="payment_verified").exists())

    def test_only_admins_verify(self):
        payment = self.appt.payment
        with self.assertRaises(NotAuthorized):
            verify_payment(payment.pk, "verified", verified_by=make_user())
        payment.refresh_from_db()
        self.assertEqual(payment.status, "pending")

    def test_bad_outcome_and_missing_payment(self):
        with self.assertRaises(ValidationError):
            verify_payment(self.appt.payment.pk, "maybe", verified_by=self.admin)
        with self.assertRaises(NotFound):
            verify_payment(99999, "verified", verified_by=self.admin)


class PaymentViewTests(APITestCase):
    def setUp(self):
        self.client = APIClient()
        service = make_service(regular="30.00")
        barber = make_barber(services=[service])
        self.appt = _book(service, barber, upcoming(MONDAY))
        self.admin = make_admin()

    def test_submit_list_verify(self):
        res = self.client.post(reverse("payment-submit"), {
            "confirmation_number": self.appt.confirmation_number,
            "method": "zelle",
            "amount_cents": 3000,
        }, format="json")
        self.assertEqual(res.status_code, status.HTTP_200_OK)
        payment_id = res.data["id"]

        self.client.force_authenticate(user=self.admin)
        res = self.client.get(reverse("payment-pending"))
        self.assertEqual([p["id"] for p in res.data["results"]], [payment_id])

        res = self.client.post(reverse("payment-verify", args=[payment_id]), {"outcome": "verified"}, format="json")
        self.assertEqual(res.status_code, status.HTTP_200_OK)
        self.assertEqual(res.data["status"], "verified")

        res = self.client.post(reverse("payment-verify", args=[payment_id]), {"outcome": "rejected"}, format="json")
        self.assertEqual(res.status_code, status.HTTP_409_CONFLICT)
        self.assertEqual(res.data["code"], "invalid_transition")

    def test_unknown_confirmation_number(self):
        res = self.client.post(reverse("payment-submit"), {
            "confirmation_number": "BB-NOPE", "method": "zelle", "amount_cents": 100,
        }, format="json")
        self.assertEqual(res.status_code, status.HTTP_404_NOT_FOUND)

    def test_customer_cannot_verify(self):
        self.client.force_authenticate(user=make_user())
        res = self.client.post(reverse("payment-verify", args=[self.appt.payment.pk]), {"outcome": "verified"})
        self.assertEqual(res.status_code, status.HTTP_403_FORBIDDEN)
