# api/utils/channels.py
import logging
import re
import smtplib
from typing import Optional

from django.conf import settings
from django.core.mail import send_mail
from twilio.base.exceptions import TwilioException
from twilio.rest import Client

from api.exceptions import DeliveryFailure

logger = logging.getLogger(__name__)

E164_RE = re.compile(r"^\+\d{7,15}$")


def to_e164(raw: Optional[str]) -> Optional[str]:
    if not raw:
        return None
    s = str(raw).strip().replace(" ", "").replace("-", "").replace("(", "").replace(")", "")
    return s if E164_RE.match(s) else None


def send_email(to_email: str, subject: str, body: str) -> None:
    """Hand an e-mail to the configured Django backend. Raises DeliveryFailure."""
    if not to_email:
        raise DeliveryFailure("No e-mail address on file.")

    try:
        sent = send_mail(subject, body, settings.DEFAULT_FROM_EMAIL, [to_email], fail_silently=False)
    except (smtplib.SMTPException, OSError) as e:
        logger.warning("E-mail to %s failed: %s", to_email, e)
        raise DeliveryFailure(f"SMTP error: {e}") from e

    if not sent:
        raise DeliveryFailure("E-mail backend accepted no messages.")
    logger.info("E-mail sent to %s (%s)", to_email, subject)


def send_sms(to_number: str, body: str) -> str:
    """
    Sends an SMS via Twilio and returns the message SID.
    - Prefer Messaging Service if TWILIO_MESSAGING_SERVICE_SID is set.
    - Fallback to TWILIO_FROM_NUMBER.
    - `to_number` must be in E.164 format (e.g., +14155552671).
    Raises DeliveryFailure whenever Twilio did not accept the message.
    """
    if not getattr(settings, "TWILIO_ENABLE", True):
        raise DeliveryFailure("SMS disabled (TWILIO_ENABLE=False).")

    account_sid = getattr(settings, "TWILIO_ACCOUNT_SID", "")
    auth_token = getattr(settings, "TWILIO_AUTH_TOKEN", "")
    from_number = getattr(settings, "TWILIO_FROM_NUMBER", "") or ""
    messaging_service_sid = getattr(settings, "TWILIO_MESSAGING_SERVICE_SID", "") or ""

    if not account_sid or not auth_token:
        logger.error("Twilio credentials missing (ACCOUNT_SID/AUTH_TOKEN).")
        raise DeliveryFailure("Twilio credentials missing.")

    phone = to_e164(to_number)
    if not phone:
        raise DeliveryFailure(f"Phone number is not E.164: {to_number!r}")

    kwargs = {"to": phone, "body": body}
    use_ms = bool(messaging_service_sid)
    if use_ms:
        kwargs["messaging_service_sid"] = messaging_service_sid
    elif from_number:
        kwargs["from_"] = from_number
    else:
        logger.error("Configure TWILIO_MESSAGING_SERVICE_SID or TWILIO_FROM_NUMBER")
        raise DeliveryFailure("No Twilio sender configured.")

    client = Client(account_sid, auth_token)
    try:
        try:
            msg = client.messages.create(**kwargs)
        except TwilioException as primary_err:
            # If the messaging service failed and we have a from_number, retry with from_
            if not (use_ms and from_number):
                raise
            logger.warning("send_sms: MS SID send failed (%s). Retrying with from_=%s",
                           primary_err.__class__.__name__, from_number)
            kwargs.pop("messaging_service_sid", None)
            kwargs["from_"] = from_number
            msg = client.messages.create(**kwargs)
    except TwilioException as e:
        logger.warning("SMS to %s failed: %s", phone, e)
        raise DeliveryFailure(f"Twilio error: {e}") from e

    logger.info("SMS accepted by Twilio. To=%s Sid=%s Status=%s",
                phone, getattr(msg, "sid", "?"), getattr(msg, "status", "?"))
    return getattr(msg, "sid", "")


def deliver(channel: str, recipient: str, subject: str, body: str) -> None:
    if channel == "email":
        send_email(recipient, subject, body)
    elif channel == "sms":
        send_sms(recipient, body)
    else:
        raise DeliveryFailure(f"Unknown channel: {channel}")
