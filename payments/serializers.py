from rest_framework import serializers

from .models import Payment


class PaymentSerializer(serializers.ModelSerializer):
    confirmation_number = serializers.CharField(source='appointment.confirmation_number', read_only=True)
    verified_by_email = serializers.EmailField(source='verified_by.email', read_only=True, default=None)

    class Meta:
        model = Payment
        fields = [
            'id', 'appointment', 'confirmation_number', 'method', 'amount_cents',
            'reference', 'proof_url', 'status', 'verified_by_email', 'verified_at',
            'admin_notes', 'created_at', 'updated_at',
        ]
        read_only_fields = fields


class PaymentSubmitSerializer(serializers.Serializer):
    confirmation_number = serializers.CharField(max_length=16)
    method = serializers.ChoiceField(choices=Payment.METHOD_CHOICES)
    amount_cents = serializers.IntegerField(min_value=0)
    reference = serializers.CharField(max_length=255, required=False, allow_blank=True, allow_null=True)
    proof_url = serializers.URLField(max_length=500, required=False, allow_blank=True, allow_null=True)


class PaymentVerifySerializer(serializers.Serializer):
    outcome = serializers.ChoiceField(choices=[("verified", "Verified"), ("rejected", "Rejected")])
    admin_notes = serializers.CharField(required=False, allow_blank=True, allow_null=True)
