import logging
from datetime import timedelta
from typing import Dict, List, Optional

from django.conf import settings
from django.utils import timezone

from api.exceptions import DeliveryFailure, InvalidTransition, NotAuthorized
from api.models import NotificationJob
from api.permissions import is_admin
from api.utils.action_tokens import action_url, active_token_for, issue_action_token
from api.utils.channels import deliver

logger = logging.getLogger(__name__)

# -----------------------------
# Message templates
# -----------------------------
# Content must stay valid if a message is delivered twice: links point at
# the appointment's standing action tokens, never at one-off codes.
TEMPLATES = {
    "confirmation": (
        "Your appointment is booked",
        "Hi {first_name}! Your {service_name} with {barber_name} is booked for {local_start}.\n"
        "Confirmation: {confirmation_number}\n"
        "Reschedule: {reschedule_url}\n"
        "Cancel: {cancel_url}",
    ),
    "payment_verified": (
        "Payment received",
        "Hi {first_name}, we received your payment of ${price}. "
        "Your {service_name} on {local_start} is confirmed ({confirmation_number}).",
    ),
    "reminder_24h": (
        "Reminder: your appointment is tomorrow",
        "Reminder: {service_name} at {local_start} with {barber_name}.\n"
        "Reschedule: {reschedule_url} | Cancel: {cancel_url}",
    ),
    "reminder_2h": (
        "Reminder: your appointment is in 2 hours",
        "Reminder: {service_name} in 2 hours at {local_start}. See you soon!\n"
        "Reschedule: {reschedule_url} | Cancel: {cancel_url}",
    ),
    "rescheduled": (
        "Your appointment was rescheduled",
        "Your appointment {confirmation_number} has been rescheduled to {local_start}. See you then!",
    ),
    "canceled": (
        "Your appointment was canceled",
        "Your {service_name} appointment {confirmation_number} has been canceled. Book again anytime!",
    ),
}

LINK_TEMPLATES = {"confirmation", "reminder_24h", "reminder_2h"}


def _recipient(appointment, channel) -> Optional[str]:
    if channel == "email":
        return appointment.contact_email if appointment.opt_in_email else None
    if channel == "sms":
        return appointment.contact_phone if appointment.opt_in_sms else None
    return None


# -----------------------------
# Enqueue
# -----------------------------
def enqueue(appointment, event_type) -> List[NotificationJob]:
    """
    Create the notification jobs configured for `event_type`.

    Channels the appointment cannot receive are skipped, and so are reminders
    whose send time has already passed. Rescheduling and cancelling drop the
    appointment's still-queued jobs first.
    """
    rules = settings.NOTIFICATION_EVENT_MAP.get(event_type)
    if rules is None:
        raise ValueError(f"Unknown notification event: {event_type}")

    now = timezone.now()

    if event_type in ("rescheduled", "canceled"):
        dropped = NotificationJob.objects.filter(
            appointment=appointment, status="queued"
        ).update(status="canceled", updated_at=now)
        if dropped:
            logger.info("Canceled %s queued jobs for appointment %s", dropped, appointment.confirmation_number)

    jobs = []
    for channel, template, offset_minutes in rules:
        if not _recipient(appointment, channel):
            continue

        if offset_minutes is None:
            scheduled_for = now
        else:
            scheduled_for = appointment.start_at + timedelta(minutes=offset_minutes)
            if scheduled_for <= now:
                continue

        jobs.append(NotificationJob(
            appointment=appointment,
            channel=channel,
            template=template,
            scheduled_for=scheduled_for,
        ))

    created = NotificationJob.objects.bulk_create(jobs)
    logger.info(
        "Enqueued %s jobs for '%s' on appointment %s",
        len(created), event_type, appointment.confirmation_number,
    )
    return created


# -----------------------------
# Rendering
# -----------------------------
def _link_for(appointment, action) -> str:
    token = active_token_for(appointment, action)
    if token is None:
        token = issue_action_token(appointment, action)
    return action_url(token)


def render(job) -> Dict[str, str]:
    if job.template not in TEMPLATES:
        raise DeliveryFailure(f"Unknown template: {job.template}")

    appointment = job.appointment
    subject, body = TEMPLATES[job.template]

    context = {
        "first_name": (appointment.contact_name or "").split(" ")[0] or "there",
        "service_name": appointment.service.name,
        "barber_name": appointment.barber.name if appointment.barber_id else "your barber",
        "local_start": timezone.localtime(appointment.start_at).strftime("%b %d, %Y %I:%M %p"),
        "confirmation_number": appointment.confirmation_number,
        "price": f"{appointment.payment_amount:.2f}",
        "reschedule_url": "",
        "cancel_url": "",
    }
    if job.template in LINK_TEMPLATES and appointment.is_active:
        context["reschedule_url"] = _link_for(appointment, "reschedule")
        context["cancel_url"] = _link_for(appointment, "cancel")

    return {"subject": subject, "body": body.format(**context)}


# -----------------------------
# Delivery worker
# -----------------------------
def retry_delay(attempts) -> timedelta:
    """Backoff after the `attempts`-th failure: 5, 15, then 60 minutes."""
    delays = settings.NOTIFICATION_RETRY_DELAYS_MINUTES or [5]
    return timedelta(minutes=delays[min(max(attempts, 1), len(delays)) - 1])


def claim_job(job_id, seen_scheduled_for, now=None) -> bool:
    """
    Lease a due job by pushing scheduled_for forward.
    Only the worker whose compare-and-swap matches gets it.
    """
    now = now or timezone.now()
    lease = timedelta(minutes=settings.NOTIFICATION_CLAIM_LEASE_MINUTES)
    return NotificationJob.objects.filter(
        pk=job_id,
        status="queued",
        scheduled_for=seen_scheduled_for,
    ).update(scheduled_for=now + lease, updated_at=now) == 1


def _record_failure(job, error) -> str:
    now = timezone.now()
    attempts = job.attempts + 1
    max_attempts = settings.NOTIFICATION_MAX_ATTEMPTS

    if attempts >= max_attempts:
        changes = {"status": "failed", "attempts": attempts, "last_error": error, "updated_at": now}
        outcome = "failed"
    else:
        changes = {
            "attempts": attempts,
            "last_error": error,
            "scheduled_for": now + retry_delay(attempts),
            "updated_at": now,
        }
        outcome = "retry"

    updated = NotificationJob.objects.filter(
        pk=job.pk, status="queued", attempts=job.attempts
    ).update(**changes)
    if not updated:
        logger.warning("Job %s changed while delivering; failure not recorded", job.pk)
        return "skipped"

    if outcome == "failed":
        logger.error("Job %s failed permanently after %s attempts: %s", job.pk, attempts, error)
    else:
        logger.warning("Job %s attempt %s failed (%s); retrying at %s", job.pk, attempts, error, changes["scheduled_for"])
    return outcome


def process_job(job) -> str:
    """Deliver one claimed job. Returns 'sent', 'retry', 'failed' or 'skipped'."""
    try:
        recipient = _recipient(job.appointment, job.channel)
        if not recipient:
            raise DeliveryFailure(f"No {job.channel} recipient for appointment.")
        message = render(job)
        deliver(job.channel, recipient, message["subject"], message["body"])
    except DeliveryFailure as e:
        return _record_failure(job, str(e.detail))
    except Exception as e:
        # Provider/network errors count against the same attempt budget
        logger.error("Unexpected error delivering job %s: %s", job.pk, e, exc_info=True)
        return _record_failure(job, f"{e.__class__.__name__}: {e}")

    now = timezone.now()
    NotificationJob.objects.filter(pk=job.pk, status="queued").update(
        status="sent", sent_at=now, last_error=None, updated_at=now,
    )
    logger.info("Job %s (%s/%s) sent", job.pk, job.channel, job.template)
    return "sent"


def process_due_jobs(batch_size=None, now=None) -> Dict[str, int]:
    """One pass of the delivery loop over due, queued jobs."""
    now = now or timezone.now()
    batch_size = batch_size or settings.NOTIFICATION_BATCH_SIZE

    due = list(
        NotificationJob.objects.filter(status="queued", scheduled_for__lte=now)
        .order_by("scheduled_for", "id")
        .values_list("id", "scheduled_for")[:batch_size]
    )

    stats = {"claimed": 0, "sent": 0, "retry": 0, "failed": 0, "skipped": 0}
    for job_id, scheduled_for in due:
        if not claim_job(job_id, scheduled_for, now=now):
            continue
        stats["claimed"] += 1
        job = NotificationJob.objects.select_related(
            "appointment", "appointment__service", "appointment__barber", "appointment__customer"
        ).get(pk=job_id)
        stats[process_job(job)] += 1

    if due:
        logger.info("Notification pass: %s", stats)
    return stats


# -----------------------------
# Admin actions
# -----------------------------
def retry_job(job, by) -> NotificationJob:
    """Put a failed job back in the queue with a fresh attempt budget."""
    if not is_admin(by):
        raise NotAuthorized()

    now = timezone.now()
    updated = NotificationJob.objects.filter(pk=job.pk, status="failed").update(
        status="queued", attempts=0, scheduled_for=now, updated_at=now,
    )
    if not updated:
        raise InvalidTransition("Only failed jobs can be retried.")
    logger.info("Job %s re-queued by %s", job.pk, by.email)
    job.refresh_from_db()
    return job


def cancel_job(job, by) -> NotificationJob:
    if not is_admin(by):
        raise NotAuthorized()

    updated = NotificationJob.objects.filter(pk=job.pk, status="queued").update(
        status="canceled", updated_at=timezone.now(),
    )
    if not updated:
        raise InvalidTransition("Only queued jobs can be canceled.")
    logger.info("Job %s canceled by %s", job.pk, by.email)
    job.refresh_from_db()
    return job
