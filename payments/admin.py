# payments/admin.py

from django.contrib import admin, messages

from api.exceptions import InvalidTransition, NotAuthorized
from .models import Payment
from .utils.verification import verify_payment

# -----------------------------
# Payment Admin
# -----------------------------
@admin.register(Payment)
class PaymentAdmin(admin.ModelAdmin):
    list_display = ("id", "appointment", "method", "amount_cents", "reference", "status", "verified_by", "created_at")
    list_filter = ("status", "method", "created_at")
    search_fields = ("appointment__confirmation_number", "reference")
    # Status only moves through the verify actions
    readonly_fields = ("status", "verified_by", "verified_at", "created_at", "updated_at")
    actions = ["mark_verified", "mark_rejected"]

    def _review(self, request, queryset, outcome):
        done = 0
        for payment in queryset:
            try:
                verify_payment(payment.pk, outcome, request.user)
                done += 1
            except (InvalidTransition, NotAuthorized) as e:
                self.message_user(request, f"Payment #{payment.pk}: {e.detail}", messages.WARNING)
        self.message_user(request, f"{done} payment(s) {outcome}.", messages.SUCCESS)

    @admin.action(description="Verify selected pending payments")
    def mark_verified(self, request, queryset):
        self._review(request, queryset, "verified")

    @admin.action(description="Reject selected pending payments")
    def mark_rejected(self, request, queryset):
        self._review(request, queryset, "rejected")
