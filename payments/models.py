from django.db import models
from django.conf import settings
import logging

logger = logging.getLogger(__name__)

# -----------------------------
# Payment Table
# -----------------------------
class Payment(models.Model):
    """
    Manual payment (Zelle, Apple Pay, Cash App) awaiting admin review.
    pending -> verified | rejected; both are final.
    """
    METHOD_CHOICES = [
        ("zelle", "Zelle"),
        ("apple_pay", "Apple Pay"),
        ("cash_app", "Cash App"),
    ]
    STATUS_CHOICES = [
        ("pending", "Pending"),
        ("verified", "Verified"),
        ("rejected", "Rejected"),
    ]

    appointment = models.OneToOneField('api.Appointment', on_delete=models.CASCADE, related_name='payment')
    # Empty until the customer submits payment details
    method = models.CharField(max_length=20, choices=METHOD_CHOICES, blank=True, null=True)
    amount_cents = models.PositiveIntegerField(default=0)
    reference = models.CharField(max_length=255, blank=True, null=True)
    proof_url = models.URLField(max_length=500, blank=True, null=True)
    status = models.CharField(max_length=10, choices=STATUS_CHOICES, default="pending")
    verified_by = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.SET_NULL,
        related_name='verified_payments',
        blank=True,
        null=True,
    )
    verified_at = models.DateTimeField(blank=True, null=True)
    admin_notes = models.TextField(blank=True, null=True)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        ordering = ['-created_at']
        indexes = [
            models.Index(fields=['status', 'created_at'], name='payments_pa_status_61d2c4_idx'),
        ]

    def __str__(self):
        return f"Payment #{self.id} for appointment #{self.appointment_id} [{self.status}]"

    @property
    def is_terminal(self):
        return self.status != "pending"
