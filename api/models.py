# api/models.py

import re
import secrets
from datetime import datetime, timedelta

from django.core.validators import MaxValueValidator, MinValueValidator
from django.db import models
from django.conf import settings
from django.db.models import Q
from django.utils import timezone
import logging
logger = logging.getLogger(__name__)

# Statuses that claim a barber's time
ACTIVE_APPOINTMENT_STATUSES = ("pending", "confirmed")

CONFIRMATION_ALPHABET = "ABCDEFGHJKLMNPQRSTUVWXYZ23456789"


def generate_confirmation_number(length=8):
    return "BB-" + "".join(secrets.choice(CONFIRMATION_ALPHABET) for _ in range(length))


class Service(models.Model):
    name = models.CharField(max_length=255)
    description = models.TextField(blank=True, null=True)
    duration_minutes = models.PositiveIntegerField(default=30, validators=[MinValueValidator(5)])
    regular_price = models.DecimalField(max_digits=10, decimal_places=2)
    vip_price = models.DecimalField(
        max_digits=10, decimal_places=2, blank=True, null=True,
        help_text="Price charged to VIP customers. Empty = regular price."
    )
    is_active = models.BooleanField(default=True)
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        ordering = ['name']

    def __str__(self):
        return self.name


class AddOn(models.Model):
    """Optional extra (beard trim, hot towel...) priced on top of a service."""
    name = models.CharField(max_length=255)
    regular_price = models.DecimalField(max_digits=10, decimal_places=2)
    vip_price = models.DecimalField(max_digits=10, decimal_places=2, blank=True, null=True)
    is_active = models.BooleanField(default=True)

    class Meta:
        ordering = ['name']

    def __str__(self):
        return f"Add-on: {self.name}"


class Barber(models.Model):
    user = models.OneToOneField(
        settings.AUTH_USER_MODEL,
        on_delete=models.SET_NULL,
        related_name='barber_profile',
        blank=True,
        null=True,
    )
    name = models.CharField(max_length=255)
    services = models.ManyToManyField(Service, related_name='barbers', blank=True)
    is_active = models.BooleanField(default=True)
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        ordering = ['id']

    def __str__(self):
        return self.name


class AvailabilityWindow(models.Model):
    """
    Recurring weekly interval for a barber.
    day_of_week: 0 = Sunday ... 6 = Saturday.
    is_available=False marks a recurring break inside the barber's hours.
    """
    DAY_CHOICES = [
        (0, "Sunday"),
        (1, "Monday"),
        (2, "Tuesday"),
        (3, "Wednesday"),
        (4, "Thursday"),
        (5, "Friday"),
        (6, "Saturday"),
    ]

    barber = models.ForeignKey(Barber, on_delete=models.CASCADE, related_name='availability_windows')
    day_of_week = models.PositiveSmallIntegerField(
        choices=DAY_CHOICES, validators=[MinValueValidator(0), MaxValueValidator(6)]
    )
    start_time = models.TimeField()
    end_time = models.TimeField()
    is_available = models.BooleanField(default=True)

    class Meta:
        ordering = ['barber', 'day_of_week', 'start_time']
        indexes = [
            models.Index(fields=['barber', 'day_of_week'], name='api_availab_barber__5c1d0e_idx'),
        ]
        constraints = [
            models.CheckConstraint(
                condition=Q(end_time__gt=models.F('start_time')),
                name='availability_window_end_after_start',
            ),
        ]

    def __str__(self):
        kind = "open" if self.is_available else "break"
        return f"{self.barber_id} {self.get_day_of_week_display()} {self.start_time:%H:%M}-{self.end_time:%H:%M} ({kind})"


class DayOff(models.Model):
    barber = models.ForeignKey(Barber, on_delete=models.CASCADE, related_name='days_off')
    date = models.DateField()
    note = models.CharField(max_length=255, blank=True, null=True)

    class Meta:
        constraints = [
            models.UniqueConstraint(fields=['barber', 'date'], name='uniq_barber_day_off'),
        ]

    def __str__(self):
        return f"Day off: barber {self.barber_id} on {self.date}"


class AvailabilityOverride(models.Model):
    """
    One-off change to a barber's hours set by an admin.
    open adds bookable time, closed blocks it. A DayOff still wins over an open override.
    """
    KIND_CHOICES = [
        ("open", "Open"),
        ("closed", "Closed"),
    ]

    barber = models.ForeignKey(Barber, on_delete=models.CASCADE, related_name='availability_overrides')
    start_at = models.DateTimeField()
    end_at = models.DateTimeField()
    kind = models.CharField(max_length=10, choices=KIND_CHOICES)
    note = models.CharField(max_length=255, blank=True, null=True)
    created_by = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.SET_NULL,
        related_name='availability_overrides',
        blank=True,
        null=True,
    )
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        ordering = ['barber', 'start_at']
        indexes = [
            models.Index(fields=['barber', 'start_at'], name='api_availab_barber__7e3f21_idx'),
        ]
        constraints = [
            models.CheckConstraint(
                condition=Q(end_at__gt=models.F('start_at')),
                name='availability_override_end_after_start',
            ),
        ]

    def __str__(self):
        return f"{self.kind} override for barber {self.barber_id}: {self.start_at:%Y-%m-%d %H:%M} - {self.end_at:%Y-%m-%d %H:%M}"


def normalize_email(value):
    return value.strip().lower() if value and value.strip() else None


def normalize_phone(value):
    digits = re.sub(r"\D", "", value or "")
    return digits or None


class BlacklistedCustomer(models.Model):
    """Contact details the shop no longer accepts bookings from. Matched on e-mail or phone digits."""
    email_norm = models.EmailField(blank=True, null=True, db_index=True)
    phone_norm = models.CharField(max_length=20, blank=True, null=True, db_index=True)
    reason = models.TextField(blank=True, null=True)
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        verbose_name = "Blacklisted customer"
        constraints = [
            models.CheckConstraint(
                condition=Q(email_norm__isnull=False) | Q(phone_norm__isnull=False),
                name='blacklist_has_contact',
            ),
        ]

    def save(self, *args, **kwargs):
        self.email_norm = normalize_email(self.email_norm)
        self.phone_norm = normalize_phone(self.phone_norm)
        super().save(*args, **kwargs)

    def __str__(self):
        return self.email_norm or self.phone_norm or f"Blacklist entry #{self.pk}"

    @classmethod
    def matches(cls, email=None, phone=None) -> bool:
        email, phone = normalize_email(email), normalize_phone(phone)
        query = Q()
        if email:
            query |= Q(email_norm=email)
        if phone:
            query |= Q(phone_norm=phone)
        if not query:
            return False
        return cls.objects.filter(query).exists()


class VipSettings(models.Model):
    enabled = models.BooleanField(default=False)
    vip_code = models.CharField(max_length=64, blank=True, null=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        verbose_name = "VIP Settings"
        verbose_name_plural = "VIP Settings"

    def __str__(self):
        return f"VIP Settings (enabled={self.enabled})"

    @classmethod
    def get_settings(cls):
        vip_settings, _ = cls.objects.get_or_create(pk=1)
        return vip_settings


class PromoCode(models.Model):
    code = models.CharField(max_length=32, unique=True)
    discount_percent = models.PositiveIntegerField(
        validators=[MinValueValidator(1), MaxValueValidator(100)]
    )
    expires_at = models.DateTimeField(blank=True, null=True)
    is_active = models.BooleanField(default=True)
    created_at = models.DateTimeField(auto_now_add=True)

    def save(self, *args, **kwargs):
        self.code = (self.code or "").strip().upper()
        super().save(*args, **kwargs)

    def __str__(self):
        return f"{self.code} (-{self.discount_percent}%)"


class Appointment(models.Model):
    STATUS_CHOICES = [
        ("pending", "Pending"),
        ("confirmed", "Confirmed"),
        ("cancelled", "Cancelled"),
        ("completed", "Completed"),
    ]
    PAYMENT_STATUS_CHOICES = [
        ("none", "Not Required"),
        ("pending", "Pending"),
        ("paid", "Paid"),
        ("failed", "Failed"),
    ]

    confirmation_number = models.CharField(max_length=16, unique=True, editable=False)

    # Registered customer, or guest contact details
    customer = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.SET_NULL,
        related_name='appointments',
        blank=True,
        null=True,
    )
    guest_name = models.CharField(max_length=255, blank=True, null=True)
    guest_email = models.EmailField(blank=True, null=True)
    guest_phone = models.CharField(max_length=20, blank=True, null=True)

    barber = models.ForeignKey(
        Barber,
        on_delete=models.PROTECT,
        related_name='appointments',
        blank=True,
        null=True,
        help_text="Empty = any barber",
    )
    service = models.ForeignKey(Service, on_delete=models.PROTECT, related_name='appointments')
    add_ons = models.ManyToManyField(AddOn, related_name='appointments', blank=True)

    date = models.DateField()
    time = models.TimeField()
    # Snapshot of the service duration at booking time
    duration_minutes = models.PositiveIntegerField()

    status = models.CharField(max_length=12, choices=STATUS_CHOICES, default="pending")
    payment_status = models.CharField(max_length=10, choices=PAYMENT_STATUS_CHOICES, default="pending")
    payment_amount = models.DecimalField(max_digits=10, decimal_places=2, default=0)
    vip_applied = models.BooleanField(default=False)

    opt_in_email = models.BooleanField(default=True)
    opt_in_sms = models.BooleanField(default=True)
    notes = models.TextField(blank=True, null=True)

    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        ordering = ['-date', '-time']
        indexes = [
            models.Index(fields=['barber', 'date'], name='api_appoint_barber__8f2a41_idx'),
            models.Index(fields=['date', 'status'], name='api_appoint_date_3b7c90_idx'),
        ]
        constraints = [
            models.UniqueConstraint(
                fields=['barber', 'date', 'time'],
                condition=Q(status__in=ACTIVE_APPOINTMENT_STATUSES),
                name='uniq_active_barber_slot',
            )
        ]

    def save(self, *args, **kwargs):
        if not self.confirmation_number:
            self.confirmation_number = generate_confirmation_number()
        if not self.duration_minutes:
            self.duration_minutes = self.service.duration_minutes
        super().save(*args, **kwargs)

    def __str__(self):
        return f"Appointment {self.confirmation_number} @ {self.date} {self.time:%H:%M}"

    @property
    def is_active(self):
        return self.status in ACTIVE_APPOINTMENT_STATUSES

    @property
    def start_at(self):
        """Aware datetime of the appointment start in the business time zone."""
        return timezone.make_aware(datetime.combine(self.date, self.time))

    @property
    def end_at(self):
        return self.start_at + timedelta(minutes=self.duration_minutes)

    @property
    def contact_name(self):
        if self.customer_id:
            return self.customer.name or self.customer.email
        return self.guest_name or "there"

    @property
    def contact_email(self):
        if self.customer_id:
            return self.customer.email
        return self.guest_email

    @property
    def contact_phone(self):
        if self.customer_id and self.customer.mobile_number:
            return self.customer.mobile_number
        return self.guest_phone


class ActionToken(models.Model):
    ACTION_CHOICES = [
        ("reschedule", "Reschedule"),
        ("cancel", "Cancel"),
    ]

    token = models.CharField(max_length=64, unique=True)
    appointment = models.ForeignKey(Appointment, on_delete=models.CASCADE, related_name='action_tokens')
    action = models.CharField(max_length=12, choices=ACTION_CHOICES)
    expires_at = models.DateTimeField()
    # Write-once; set by redemption only
    used_at = models.DateTimeField(blank=True, null=True)
    issued_by = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.SET_NULL,
        related_name='issued_action_tokens',
        blank=True,
        null=True,
    )
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        indexes = [
            models.Index(fields=['appointment', 'action'], name='api_actiont_appoint_4e6d12_idx'),
        ]

    def __str__(self):
        return f"{self.action} token for appointment #{self.appointment_id}"


class NotificationJob(models.Model):
    CHANNEL_CHOICES = [
        ("email", "Email"),
        ("sms", "SMS"),
    ]
    STATUS_CHOICES = [
        ("queued", "Queued"),
        ("sent", "Sent"),
        ("failed", "Failed"),
        ("canceled", "Canceled"),
    ]

    appointment = models.ForeignKey(Appointment, on_delete=models.CASCADE, related_name='notification_jobs')
    channel = models.CharField(max_length=10, choices=CHANNEL_CHOICES)
    template = models.CharField(max_length=50)
    scheduled_for = models.DateTimeField(db_index=True)
    attempts = models.PositiveIntegerField(default=0)
    status = models.CharField(max_length=10, choices=STATUS_CHOICES, default="queued")
    last_error = models.TextField(blank=True, null=True)
    sent_at = models.DateTimeField(blank=True, null=True)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        ordering = ['scheduled_for']
        indexes = [
            models.Index(fields=['status', 'scheduled_for'], name='api_notific_status_9a0b33_idx'),
        ]

    def __str__(self):
        return f"{self.channel}:{self.template} for appointment #{self.appointment_id} [{self.status}]"
