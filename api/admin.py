from django.contrib import admin, messages

from api.exceptions import InvalidTransition
from api.utils.notifications import cancel_job, retry_job

from .models import (
    ActionToken,
    AddOn,
    Appointment,
    AvailabilityOverride,
    AvailabilityWindow,
    Barber,
    BlacklistedCustomer,
    DayOff,
    NotificationJob,
    PromoCode,
    Service,
    VipSettings,
)

admin.site.site_header = "BarberBook Administration"
admin.site.site_title = "BarberBook Admin Portal"
admin.site.index_title = "Welcome to BarberBook Admin Dashboard"


class AvailabilityWindowInline(admin.TabularInline):
    model = AvailabilityWindow
    extra = 1


class DayOffInline(admin.TabularInline):
    model = DayOff
    extra = 0


class AvailabilityOverrideInline(admin.TabularInline):
    model = AvailabilityOverride
    fk_name = 'barber'
    extra = 0
    exclude = ('created_by',)


@admin.register(Barber)
class BarberAdmin(admin.ModelAdmin):
    list_display = ('name', 'user', 'is_active')
    list_filter = ('is_active',)
    search_fields = ('name', 'user__email')
    filter_horizontal = ('services',)
    inlines = [AvailabilityWindowInline, DayOffInline, AvailabilityOverrideInline]


@admin.register(Service)
class ServiceAdmin(admin.ModelAdmin):
    list_display = ('name', 'duration_minutes', 'regular_price', 'vip_price', 'is_active')
    list_filter = ('is_active',)
    search_fields = ('name',)


@admin.register(AddOn)
class AddOnAdmin(admin.ModelAdmin):
    list_display = ('name', 'regular_price', 'vip_price', 'is_active')


@admin.register(AvailabilityOverride)
class AvailabilityOverrideAdmin(admin.ModelAdmin):
    list_display = ('barber', 'kind', 'start_at', 'end_at', 'note', 'created_by')
    list_filter = ('kind', 'barber')
    readonly_fields = ('created_by', 'created_at')

    def save_model(self, request, obj, form, change):
        if not obj.created_by_id:
            obj.created_by = request.user
        super().save_model(request, obj, form, change)


@admin.register(BlacklistedCustomer)
class BlacklistedCustomerAdmin(admin.ModelAdmin):
    list_display = ('email_norm', 'phone_norm', 'reason', 'created_at')
    search_fields = ('email_norm', 'phone_norm')


@admin.register(VipSettings)
class VipSettingsAdmin(admin.ModelAdmin):
    list_display = ('id', 'enabled', 'updated_at')


@admin.register(PromoCode)
class PromoCodeAdmin(admin.ModelAdmin):
    list_display = ('code', 'discount_percent', 'expires_at', 'is_active')
    list_filter = ('is_active',)
    search_fields = ('code',)


class NotificationJobInline(admin.TabularInline):
    model = NotificationJob
    extra = 0
    can_delete = False
    readonly_fields = ('channel', 'template', 'scheduled_for', 'attempts', 'status', 'last_error', 'sent_at')


@admin.register(Appointment)
class AppointmentAdmin(admin.ModelAdmin):
    list_display = (
        'confirmation_number', 'date', 'time', 'barber', 'service',
        'status', 'payment_status', 'payment_amount', 'vip_applied',
    )
    list_filter = ('status', 'payment_status', 'vip_applied', 'barber', 'date')
    search_fields = ('confirmation_number', 'guest_name', 'guest_email', 'customer__email')
    readonly_fields = ('confirmation_number', 'created_at', 'updated_at')
    date_hierarchy = 'date'
    inlines = [NotificationJobInline]


@admin.register(ActionToken)
class ActionTokenAdmin(admin.ModelAdmin):
    list_display = ('appointment', 'action', 'expires_at', 'used_at', 'issued_by')
    list_filter = ('action',)
    readonly_fields = ('token', 'used_at', 'created_at')


@admin.register(NotificationJob)
class NotificationJobAdmin(admin.ModelAdmin):
    list_display = ('id', 'appointment', 'channel', 'template', 'scheduled_for', 'attempts', 'status')
    list_filter = ('status', 'channel', 'template')
    readonly_fields = ('attempts', 'last_error', 'sent_at', 'created_at', 'updated_at')
    actions = ['retry_failed_jobs', 'cancel_queued_jobs']

    @admin.action(description="Retry selected failed jobs")
    def retry_failed_jobs(self, request, queryset):
        done = 0
        for job in queryset:
            try:
                retry_job(job, by=request.user)
                done += 1
            except InvalidTransition:
                continue
        self.message_user(request, f"{done} job(s) re-queued.", messages.SUCCESS)

    @admin.action(description="Cancel selected queued jobs")
    def cancel_queued_jobs(self, request, queryset):
        done = 0
        for job in queryset:
            try:
                cancel_job(job, by=request.user)
                done += 1
            except InvalidTransition:
                continue
        self.message_user(request, f"{done} job(s) canceled.", messages.SUCCESS)
