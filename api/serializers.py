# api/serializers.py

from rest_framework import serializers

from .models import (
    ActionToken,
    AddOn,
    Appointment,
    Barber,
    NotificationJob,
    Service,
)


class SlotCandidateSerializer(serializers.Serializer):
    date = serializers.DateField()
    time = serializers.TimeField(format="%H:%M")
    barber_ids = serializers.ListField(child=serializers.IntegerField())


class AppointmentCreateSerializer(serializers.Serializer):
    service_id = serializers.PrimaryKeyRelatedField(
        queryset=Service.objects.filter(is_active=True), source='service'
    )
    barber_id = serializers.PrimaryKeyRelatedField(
        queryset=Barber.objects.filter(is_active=True), source='barber',
        required=False, allow_null=True,
    )
    add_on_ids = serializers.PrimaryKeyRelatedField(
        queryset=AddOn.objects.filter(is_active=True), source='add_ons',
        many=True, required=False,
    )
    date = serializers.DateField()
    time = serializers.TimeField()

    guest_name = serializers.CharField(max_length=255, required=False, allow_blank=True, allow_null=True)
    guest_email = serializers.EmailField(required=False, allow_blank=True, allow_null=True)
    guest_phone = serializers.CharField(max_length=20, required=False, allow_blank=True, allow_null=True)

    vip_code = serializers.CharField(max_length=64, required=False, allow_blank=True, allow_null=True)
    promo_code = serializers.CharField(max_length=32, required=False, allow_blank=True, allow_null=True)
    opt_in_email = serializers.BooleanField(required=False, default=True)
    opt_in_sms = serializers.BooleanField(required=False, default=True)
    notes = serializers.CharField(required=False, allow_blank=True, allow_null=True)

    def validate(self, attrs):
        barber = attrs.get('barber')
        service = attrs['service']
        if barber is not None and not barber.services.filter(pk=service.pk).exists():
            raise serializers.ValidationError({"barber_id": "This barber does not offer that service."})
        return attrs


class AppointmentSerializer(serializers.ModelSerializer):
    service_name = serializers.CharField(source='service.name', read_only=True)
    barber_name = serializers.CharField(source='barber.name', read_only=True, default=None)
    time = serializers.TimeField(format="%H:%M", read_only=True)
    add_on_ids = serializers.PrimaryKeyRelatedField(source='add_ons', many=True, read_only=True)

    class Meta:
        model = Appointment
        fields = [
            'id', 'confirmation_number',
            'service', 'service_name', 'barber', 'barber_name', 'add_on_ids',
            'date', 'time', 'duration_minutes',
            'status', 'payment_status', 'payment_amount', 'vip_applied',
            'created_at',
        ]
        read_only_fields = fields


class RescheduleSerializer(serializers.Serializer):
    date = serializers.DateField()
    time = serializers.TimeField()


class ActionTokenIssueSerializer(serializers.Serializer):
    action = serializers.ChoiceField(choices=ActionToken.ACTION_CHOICES)
    ttl_hours = serializers.IntegerField(required=False, min_value=1, max_value=24 * 30)


class ActionTokenSerializer(serializers.ModelSerializer):
    action_url = serializers.SerializerMethodField()

    class Meta:
        model = ActionToken
        fields = ['token', 'action', 'expires_at', 'action_url']

    def get_action_url(self, obj):
        from api.utils.action_tokens import action_url
        return action_url(obj)


class NotificationJobSerializer(serializers.ModelSerializer):
    confirmation_number = serializers.CharField(source='appointment.confirmation_number', read_only=True)

    class Meta:
        model = NotificationJob
        fields = [
            'id', 'appointment', 'confirmation_number', 'channel', 'template',
            'scheduled_for', 'attempts', 'status', 'last_error', 'sent_at',
            'created_at', 'updated_at',
        ]
        read_only_fields = fields
