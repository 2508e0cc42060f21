import logging
import secrets
from datetime import timedelta

from django.conf import settings
from django.utils import timezone

from api.exceptions import TokenAlreadyUsed, TokenExpired, TokenMismatched, TokenNotFound
from api.models import ActionToken, Appointment

logger = logging.getLogger(__name__)

# 32 random bytes -> 43 url-safe characters (256 bits)
TOKEN_BYTES = 32

VALID_ACTIONS = {choice for choice, _ in ActionToken.ACTION_CHOICES}


def generate_token() -> str:
    return secrets.token_urlsafe(TOKEN_BYTES)


def issue_action_token(appointment, action, ttl_hours=None, issued_by=None) -> ActionToken:
    """Create a single-use token letting its holder cancel or reschedule `appointment`."""
    if action not in VALID_ACTIONS:
        raise ValueError(f"Unknown action: {action}")
    if ttl_hours is None:
        ttl_hours = settings.ACTION_TOKEN_TTL_HOURS

    expires_at = timezone.now() + timedelta(hours=ttl_hours)
    token = ActionToken.objects.create(
        token=generate_token(),
        appointment=appointment,
        action=action,
        expires_at=expires_at,
        issued_by=issued_by,
    )
    logger.info(
        "Issued %s token for appointment %s (expires %s)",
        action, appointment.confirmation_number, expires_at.isoformat(),
    )
    return token


def action_url(token: ActionToken) -> str:
    base_url = settings.APP_BASE_URL.rstrip("/")
    return f"{base_url}/a/{token.token}/{token.action}"


def redeem_action_token(token, expected_action) -> Appointment:
    """
    Mark the token used and return its appointment.

    The check and the write are one conditional UPDATE, so of two concurrent
    redemptions exactly one succeeds. The reason for a failure is only looked
    up after the UPDATE matched nothing.
    """
    now = timezone.now()
    updated = ActionToken.objects.filter(
        token=token,
        action=expected_action,
        used_at__isnull=True,
        expires_at__gte=now,
    ).update(used_at=now)

    if updated == 1:
        record = ActionToken.objects.select_related('appointment').get(token=token)
        logger.info("Redeemed %s token for appointment %s", expected_action, record.appointment.confirmation_number)
        return record.appointment

    record = ActionToken.objects.filter(token=token).first()
    if record is None:
        raise TokenNotFound()
    if now > record.expires_at:
        raise TokenExpired()
    if record.action != expected_action:
        raise TokenMismatched()
    # Only remaining reason: used_at is already set
    logger.warning("Replay of used %s token for appointment #%s", record.action, record.appointment_id)
    raise TokenAlreadyUsed()


def active_token_for(appointment, action):
    """Latest unused, unexpired token for the appointment and action, if any."""
    return (
        ActionToken.objects.filter(
            appointment=appointment,
            action=action,
            used_at__isnull=True,
            expires_at__gt=timezone.now(),
        )
        .order_by('-created_at', '-id')
        .first()
    )
