import logging
from datetime import date, datetime, time
from decimal import Decimal
from typing import NamedTuple, Optional, Sequence

from django.db import IntegrityError, transaction
from django.utils import timezone
from rest_framework.exceptions import ValidationError

from api.exceptions import InvalidTransition, NotAuthorized, SlotTaken
from api.models import ACTIVE_APPOINTMENT_STATUSES, Appointment, BlacklistedCustomer
from api.permissions import is_admin
from api.utils.action_tokens import issue_action_token, redeem_action_token
from api.utils.availability import free_barbers_at, on_grid, select_best_barber
from api.utils.notifications import enqueue
from api.utils.pricing import apply_promo_discount, calculate_price, validate_promo_code, validate_vip_code
from payments.models import Payment

logger = logging.getLogger(__name__)


class BookingDraft(NamedTuple):
    service: object
    date: date
    time: time
    barber: Optional[object] = None  # None = any barber
    add_ons: Sequence = ()
    customer: Optional[object] = None
    guest_name: Optional[str] = None
    guest_email: Optional[str] = None
    guest_phone: Optional[str] = None
    vip_code: Optional[str] = None
    promo_code: Optional[str] = None
    opt_in_email: bool = True
    opt_in_sms: bool = True
    notes: Optional[str] = None


def cents(amount: Decimal) -> int:
    return int((Decimal(amount) * 100).to_integral_value())


def _slot_is_claimed(barber_id, date_obj, time_obj, exclude_pk=None) -> bool:
    qs = Appointment.objects.filter(
        barber_id=barber_id, date=date_obj, time=time_obj,
        status__in=ACTIVE_APPOINTMENT_STATUSES,
    )
    if exclude_pk:
        qs = qs.exclude(pk=exclude_pk)
    return qs.exists()


def _ensure_future(date_obj, time_obj):
    start = timezone.make_aware(datetime.combine(date_obj, time_obj))
    if start <= timezone.now():
        raise ValidationError({"time": "This time has already passed."})


def _validate_contact(draft: BookingDraft):
    if draft.customer is None:
        if not draft.guest_name:
            raise ValidationError({"guest_name": "Name is required for guest bookings."})
        if not draft.guest_email and not draft.guest_phone:
            raise ValidationError({"guest_email": "Provide an e-mail address or a phone number."})
        email, phone = draft.guest_email, draft.guest_phone
    else:
        email = draft.guest_email or draft.customer.email
        phone = draft.guest_phone or draft.customer.mobile_number

    if BlacklistedCustomer.matches(email, phone):
        logger.warning("Blocked booking for blacklisted contact (email=%s, phone=%s)", email, phone)
        raise ValidationError({"contact": "We are unable to accept this booking. Please contact the shop."})


# -----------------------------
# Booking
# -----------------------------
def book(draft: BookingDraft) -> Appointment:
    """
    Commit a booking or raise SlotTaken.

    Correctness rests on the partial unique constraint over
    (barber, date, time) for pending/confirmed appointments: the insert
    either wins or fails with IntegrityError. There is no retry and no
    alternative slot; the caller re-queries availability.
    """
    _validate_contact(draft)
    _ensure_future(draft.date, draft.time)

    is_vip = validate_vip_code(draft.vip_code)
    promo = validate_promo_code(draft.promo_code)

    add_ons = list(draft.add_ons)
    price = calculate_price(draft.service, add_ons, is_vip)
    amount = apply_promo_discount(price.subtotal, promo)

    service = draft.service
    if not on_grid(draft.time):
        logger.info("Off-grid start %s rejected", draft.time)
        raise SlotTaken()

    free = free_barbers_at(
        draft.date, draft.time, service.duration_minutes,
        barber_id=draft.barber.pk if draft.barber else None,
        service_id=service.pk,
    )
    if not free:
        logger.info("Slot %s %s not offered (barber=%s)", draft.date, draft.time, draft.barber and draft.barber.pk)
        raise SlotTaken()

    barber_id = draft.barber.pk if draft.barber else select_best_barber(free, draft.date)

    with transaction.atomic():
        try:
            with transaction.atomic():
                appointment = Appointment.objects.create(
                    customer=draft.customer,
                    guest_name=draft.guest_name,
                    guest_email=draft.guest_email,
                    guest_phone=draft.guest_phone,
                    barber_id=barber_id,
                    service=service,
                    date=draft.date,
                    time=draft.time,
                    duration_minutes=service.duration_minutes,
                    status="confirmed" if is_vip else "pending",
                    payment_status="none" if is_vip else "pending",
                    payment_amount=amount,
                    vip_applied=is_vip,
                    opt_in_email=draft.opt_in_email,
                    opt_in_sms=draft.opt_in_sms,
                    notes=draft.notes,
                )
        except IntegrityError as e:
            if _slot_is_claimed(barber_id, draft.date, draft.time):
                logger.info("Booking race lost for barber %s at %s %s", barber_id, draft.date, draft.time)
                raise SlotTaken() from e
            raise

        if add_ons:
            appointment.add_ons.set(add_ons)

        if not is_vip:
            Payment.objects.create(
                appointment=appointment,
                amount_cents=cents(amount),
                status="pending",
            )

        enqueue(appointment, "created")
        issue_action_token(appointment, "cancel")
        issue_action_token(appointment, "reschedule")

    logger.info(
        "Booked %s: barber %s, %s %s, %s (vip=%s)",
        appointment.confirmation_number, barber_id, draft.date, draft.time, amount, is_vip,
    )
    return appointment


# -----------------------------
# Lifecycle
# -----------------------------
def cancel_appointment(appointment, by=None) -> Appointment:
    """
    Cancel a pending/confirmed appointment. `by` is the acting user, or None
    when the caller already proved ownership (action token).
    """
    if by is not None and not is_admin(by) and appointment.customer_id != by.pk:
        raise NotAuthorized("You can only cancel your own appointments.")

    updated = Appointment.objects.filter(
        pk=appointment.pk, status__in=ACTIVE_APPOINTMENT_STATUSES,
    ).update(status="cancelled", updated_at=timezone.now())
    if not updated:
        raise InvalidTransition("This appointment can no longer be cancelled.")

    appointment.refresh_from_db()
    enqueue(appointment, "canceled")
    logger.info("Cancelled %s", appointment.confirmation_number)
    return appointment


def reschedule_appointment(appointment, new_date, new_time) -> Appointment:
    """Move an active appointment to a new start with the same barber."""
    if not appointment.is_active:
        raise InvalidTransition("This appointment can no longer be rescheduled.")
    _ensure_future(new_date, new_time)

    if not on_grid(new_time):
        raise SlotTaken()

    free = free_barbers_at(
        new_date, new_time, appointment.duration_minutes,
        barber_id=appointment.barber_id,
        exclude_appointment_id=appointment.pk,
    )
    if appointment.barber_id not in free:
        raise SlotTaken()

    with transaction.atomic():
        try:
            with transaction.atomic():
                updated = Appointment.objects.filter(
                    pk=appointment.pk, status__in=ACTIVE_APPOINTMENT_STATUSES,
                ).update(date=new_date, time=new_time, updated_at=timezone.now())
        except IntegrityError as e:
            if _slot_is_claimed(appointment.barber_id, new_date, new_time, exclude_pk=appointment.pk):
                raise SlotTaken() from e
            raise

        if not updated:
            raise InvalidTransition("This appointment can no longer be rescheduled.")

        appointment.refresh_from_db()
        enqueue(appointment, "rescheduled")

    logger.info("Rescheduled %s to %s %s", appointment.confirmation_number, new_date, new_time)
    return appointment


def complete_appointment(appointment, by) -> Appointment:
    if not is_admin(by):
        raise NotAuthorized()

    updated = Appointment.objects.filter(
        pk=appointment.pk, status__in=ACTIVE_APPOINTMENT_STATUSES,
    ).update(status="completed", updated_at=timezone.now())
    if not updated:
        raise InvalidTransition("Only pending or confirmed appointments can be completed.")

    appointment.refresh_from_db()
    logger.info("Completed %s (by %s)", appointment.confirmation_number, by.email)
    return appointment


# -----------------------------
# Action links
# -----------------------------
def cancel_with_token(token) -> Appointment:
    # A failed cancel rolls back the token redemption
    with transaction.atomic():
        appointment = redeem_action_token(token, "cancel")
        return cancel_appointment(appointment)


def reschedule_with_token(token, new_date, new_time) -> Appointment:
    with transaction.atomic():
        appointment = redeem_action_token(token, "reschedule")
        return reschedule_appointment(appointment, new_date, new_time)
