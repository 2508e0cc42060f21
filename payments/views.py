import logging

from django.shortcuts import get_object_or_404
from rest_framework import status
from rest_framework.response import Response
from rest_framework.views import APIView

from api.models import Appointment
from api.permissions import IsAdminRole
from .models import Payment
from .pagination import PaymentCursorPagination
from .serializers import PaymentSerializer, PaymentSubmitSerializer, PaymentVerifySerializer
from .utils.verification import submit_payment, verify_payment

logger = logging.getLogger(__name__)


class PaymentSubmitView(APIView):
    """
    Customer submits Zelle / Apple Pay / Cash App details for review.
    Body: {confirmation_number, method, amount_cents, reference?, proof_url?}
    """
    authentication_classes = []
    permission_classes = []

    def post(self, request):
        serializer = PaymentSubmitSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        data = serializer.validated_data

        appointment = get_object_or_404(Appointment, confirmation_number=data['confirmation_number'].upper())
        payment = submit_payment(
            appointment,
            data['method'],
            data['amount_cents'],
            reference=data.get('reference') or None,
            proof_url=data.get('proof_url') or None,
        )
        return Response(PaymentSerializer(payment).data, status=status.HTTP_200_OK)


class PendingPaymentListView(APIView):
    permission_classes = [IsAdminRole]

    def get(self, request):
        qs = Payment.objects.filter(status="pending").select_related('appointment', 'verified_by')
        paginator = PaymentCursorPagination()
        page = paginator.paginate_queryset(qs, request, view=self)
        return paginator.get_paginated_response(PaymentSerializer(page, many=True).data)


class PaymentVerifyView(APIView):
    permission_classes = [IsAdminRole]

    def post(self, request, pk):
        serializer = PaymentVerifySerializer(data=request.data)
        serializer.is_valid(raise_exception=True)

        payment = verify_payment(
            pk,
            serializer.validated_data['outcome'],
            verified_by=request.user,
            admin_notes=serializer.validated_data.get('admin_notes'),
        )
        return Response(PaymentSerializer(payment).data)
