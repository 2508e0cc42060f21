import logging

from django.db import IntegrityError, transaction
from django.utils import timezone
from rest_framework.exceptions import NotFound, ValidationError

from api.exceptions import InvalidTransition, NotAuthorized
from api.models import Appointment
from api.permissions import is_admin
from api.utils.notifications import enqueue
from payments.models import Payment

logger = logging.getLogger(__name__)

VALID_METHODS = {choice for choice, _ in Payment.METHOD_CHOICES}
OUTCOMES = ("verified", "rejected")


def submit_payment(appointment, method, amount_cents, reference=None, proof_url=None) -> Payment:
    """
    Record the customer's payment details. Only a pending payment accepts
    them; the status itself never moves here.
    """
    if method not in VALID_METHODS:
        raise ValidationError({"method": f"Choose one of: {', '.join(sorted(VALID_METHODS))}."})
    if amount_cents is None or int(amount_cents) < 0:
        raise ValidationError({"amount_cents": "Amount must be zero or more."})
    if appointment.vip_applied:
        raise ValidationError({"appointment": "No payment is required for this appointment."})
    if appointment.status == "cancelled":
        raise InvalidTransition("This appointment was cancelled.")

    fields = {
        "method": method,
        "amount_cents": int(amount_cents),
        "reference": reference,
        "proof_url": proof_url,
    }

    payment = Payment.objects.filter(appointment=appointment).first()
    if payment is None:
        try:
            with transaction.atomic():
                payment = Payment.objects.create(appointment=appointment, status="pending", **fields)
            logger.info("Payment #%s submitted for %s via %s", payment.pk, appointment.confirmation_number, method)
            return payment
        except IntegrityError:
            # Another submission created the row first
            payment = Payment.objects.get(appointment=appointment)

    updated = Payment.objects.filter(pk=payment.pk, status="pending").update(
        updated_at=timezone.now(), **fields
    )
    if not updated:
        logger.warning("Submission refused for finalized payment #%s", payment.pk)
        raise InvalidTransition("This payment has already been reviewed.")

    payment.refresh_from_db()
    logger.info("Payment #%s details updated (%s)", payment.pk, method)
    return payment


def verify_payment(payment_id, outcome, verified_by, admin_notes=None) -> Payment:
    """
    Admin decision on a pending payment: one conditional UPDATE from
    pending to `outcome`. A reviewed payment raises InvalidTransition.
    """
    if outcome not in OUTCOMES:
        raise ValidationError({"outcome": "Must be 'verified' or 'rejected'."})
    if not is_admin(verified_by):
        raise NotAuthorized()

    now = timezone.now()
    changes = {
        "status": outcome,
        "verified_by": verified_by,
        "verified_at": now,
        "updated_at": now,
    }
    if admin_notes is not None:
        changes["admin_notes"] = admin_notes

    with transaction.atomic():
        updated = Payment.objects.filter(pk=payment_id, status="pending").update(**changes)
        if not updated:
            if not Payment.objects.filter(pk=payment_id).exists():
                raise NotFound("Payment not found.")
            logger.warning("Payment #%s already finalized; %s by %s refused", payment_id, outcome, verified_by.email)
            raise InvalidTransition("This payment has already been reviewed.")

        payment = Payment.objects.select_related('appointment').get(pk=payment_id)
        appointment = payment.appointment

        if outcome == "verified":
            Appointment.objects.filter(pk=appointment.pk).update(payment_status="paid", updated_at=now)
            Appointment.objects.filter(pk=appointment.pk, status="pending").update(status="confirmed", updated_at=now)
            appointment.refresh_from_db()
            # A cancelled appointment keeps its paid record but gets no "confirmed" message
            if appointment.status != "cancelled":
                enqueue(appointment, "verified")
        else:
            Appointment.objects.filter(pk=appointment.pk).update(payment_status="failed", updated_at=now)

    logger.info("Payment #%s %s by %s", payment_id, outcome, verified_by.email)
    return payment
