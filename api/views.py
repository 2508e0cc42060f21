import logging
from datetime import datetime, timedelta
from itertools import islice

from django.conf import settings
from django.shortcuts import get_object_or_404
from django.utils import timezone
from rest_framework import status
from rest_framework.permissions import AllowAny, IsAuthenticated
from rest_framework.response import Response
from rest_framework.views import APIView

from api.models import Appointment, Barber, NotificationJob, Service
from api.pagination import NotificationJobCursorPagination
from api.permissions import IsAdminRole
from api.serializers import (
    ActionTokenIssueSerializer,
    ActionTokenSerializer,
    AppointmentCreateSerializer,
    AppointmentSerializer,
    NotificationJobSerializer,
    RescheduleSerializer,
    SlotCandidateSerializer,
)
from api.utils.action_tokens import issue_action_token
from api.utils.availability import SlotCriteria, find_slots
from api.utils.booking import (
    BookingDraft,
    book,
    cancel_appointment,
    cancel_with_token,
    complete_appointment,
    reschedule_with_token,
)
from api.utils.notifications import cancel_job, retry_job

logger = logging.getLogger(__name__)

MAX_SLOTS_PER_RESPONSE = 500


def _parse_date(value):
    return datetime.strptime(value, "%Y-%m-%d").date()


# -----------------------------
# Availability
# -----------------------------
class AvailabilityView(APIView):
    """
    Returns bookable start times.
    Query Params:
    - service_id (required)
    - barber_id (optional, omit for any barber)
    - from, to (optional, YYYY-MM-DD; default today .. lookahead)
    - granularity (optional, minutes, default 15)
    - limit (optional, max number of slots)
    """
    authentication_classes = []
    permission_classes = []

    def get(self, request):
        service_id = request.query_params.get('service_id')
        barber_id = request.query_params.get('barber_id')

        if not service_id:
            return Response({"detail": "Missing required parameter: service_id"}, status=status.HTTP_400_BAD_REQUEST)

        try:
            service = Service.objects.get(id=int(service_id), is_active=True)
        except ValueError:
            return Response({"detail": "service_id must be an integer"}, status=status.HTTP_400_BAD_REQUEST)
        except Service.DoesNotExist:
            return Response({"detail": "Service not found"}, status=status.HTTP_404_NOT_FOUND)

        barber = None
        if barber_id:
            try:
                barber = Barber.objects.get(id=int(barber_id), is_active=True)
            except ValueError:
                return Response({"detail": "barber_id must be an integer"}, status=status.HTTP_400_BAD_REQUEST)
            except Barber.DoesNotExist:
                return Response({"detail": "Barber not found"}, status=status.HTTP_404_NOT_FOUND)

        today = timezone.localdate()
        horizon = today + timedelta(days=settings.BOOKING_LOOKAHEAD_DAYS - 1)
        try:
            date_from = _parse_date(request.query_params['from']) if request.query_params.get('from') else today
            date_to = _parse_date(request.query_params['to']) if request.query_params.get('to') else horizon
            granularity = int(request.query_params.get('granularity') or settings.BOOKING_SLOT_GRANULARITY_MINUTES)
            limit = int(request.query_params.get('limit') or MAX_SLOTS_PER_RESPONSE)
        except ValueError:
            return Response(
                {"detail": "Invalid parameters. Dates use YYYY-MM-DD; granularity and limit are integers."},
                status=status.HTTP_400_BAD_REQUEST,
            )

        if granularity < 5 or granularity > 120:
            return Response({"detail": "granularity must be between 5 and 120 minutes"}, status=status.HTTP_400_BAD_REQUEST)
        # Bookings are only accepted on the shop's slot grid
        if granularity % settings.BOOKING_SLOT_GRANULARITY_MINUTES:
            return Response(
                {"detail": f"granularity must be a multiple of {settings.BOOKING_SLOT_GRANULARITY_MINUTES} minutes"},
                status=status.HTTP_400_BAD_REQUEST,
            )

        # Never in the past, never past the lookahead window
        date_from = max(date_from, today)
        date_to = min(date_to, horizon)
        limit = max(1, min(limit, MAX_SLOTS_PER_RESPONSE))

        criteria = SlotCriteria(
            barber_id=barber.id if barber else None,
            service_duration_minutes=service.duration_minutes,
            range_start=date_from,
            range_end=date_to,
            granularity_minutes=granularity,
            service_id=service.id,
            not_before=timezone.now(),
        )
        slots = [c._asdict() for c in islice(find_slots(criteria), limit)]

        return Response({
            "service_id": service.id,
            "barber_id": barber.id if barber else None,
            "from": date_from,
            "to": date_to,
            "granularity": granularity,
            "slots": SlotCandidateSerializer(slots, many=True).data,
        })


# -----------------------------
# Appointments
# -----------------------------
class AppointmentCreateView(APIView):
    """
    Books an appointment for a signed-in customer or a guest.
    409 {"code": "slot_taken"} means the slot was claimed first; re-query availability.
    """
    permission_classes = [AllowAny]

    def post(self, request):
        serializer = AppointmentCreateSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        data = serializer.validated_data

        customer = request.user if request.user.is_authenticated else None
        draft = BookingDraft(
            service=data['service'],
            barber=data.get('barber'),
            add_ons=data.get('add_ons', []),
            date=data['date'],
            time=data['time'],
            customer=customer,
            guest_name=data.get('guest_name') or (customer.name if customer else None),
            guest_email=data.get('guest_email') or None,
            guest_phone=data.get('guest_phone') or None,
            vip_code=data.get('vip_code'),
            promo_code=data.get('promo_code'),
            opt_in_email=data.get('opt_in_email', True),
            opt_in_sms=data.get('opt_in_sms', True),
            notes=data.get('notes'),
        )
        appointment = book(draft)

        payload = AppointmentSerializer(appointment).data
        payload["requires_payment"] = not appointment.vip_applied
        return Response(payload, status=status.HTTP_201_CREATED)


class AppointmentLookupView(APIView):
    authentication_classes = []
    permission_classes = []

    def get(self, request, confirmation_number):
        appointment = get_object_or_404(
            Appointment.objects.select_related('service', 'barber'),
            confirmation_number=confirmation_number.upper(),
        )
        return Response(AppointmentSerializer(appointment).data)


class AppointmentCancelView(APIView):
    permission_classes = [IsAuthenticated]

    def post(self, request, pk):
        appointment = get_object_or_404(Appointment, pk=pk)
        appointment = cancel_appointment(appointment, by=request.user)
        return Response(AppointmentSerializer(appointment).data)


class AppointmentCompleteView(APIView):
    permission_classes = [IsAdminRole]

    def post(self, request, pk):
        appointment = get_object_or_404(Appointment, pk=pk)
        appointment = complete_appointment(appointment, by=request.user)
        return Response(AppointmentSerializer(appointment).data)


class ActionTokenIssueView(APIView):
    permission_classes = [IsAdminRole]

    def post(self, request, pk):
        appointment = get_object_or_404(Appointment, pk=pk)
        serializer = ActionTokenIssueSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)

        token = issue_action_token(
            appointment,
            serializer.validated_data['action'],
            ttl_hours=serializer.validated_data.get('ttl_hours'),
            issued_by=request.user,
        )
        return Response(ActionTokenSerializer(token).data, status=status.HTTP_201_CREATED)


class ActionLinkView(APIView):
    """
    Redeems a self-service link /a/<token>/<action>.
    cancel: no body. reschedule: {"date": "YYYY-MM-DD", "time": "HH:MM"}.
    """
    authentication_classes = []
    permission_classes = []

    def post(self, request, token, action):
        if action == "cancel":
            appointment = cancel_with_token(token)
        elif action == "reschedule":
            serializer = RescheduleSerializer(data=request.data)
            serializer.is_valid(raise_exception=True)
            appointment = reschedule_with_token(
                token, serializer.validated_data['date'], serializer.validated_data['time'],
            )
        else:
            return Response({"detail": "Unknown action", "code": "not_found"}, status=status.HTTP_404_NOT_FOUND)

        return Response(AppointmentSerializer(appointment).data)


# -----------------------------
# Notification jobs (admin)
# -----------------------------
class NotificationJobListView(APIView):
    permission_classes = [IsAdminRole]

    def get(self, request):
        qs = NotificationJob.objects.select_related('appointment')
        job_status = request.query_params.get('status')
        if job_status:
            qs = qs.filter(status=job_status)
        appointment_id = request.query_params.get('appointment_id')
        if appointment_id:
            qs = qs.filter(appointment_id=appointment_id)

        paginator = NotificationJobCursorPagination()
        page = paginator.paginate_queryset(qs, request, view=self)
        return paginator.get_paginated_response(NotificationJobSerializer(page, many=True).data)


class NotificationJobRetryView(APIView):
    permission_classes = [IsAdminRole]

    def post(self, request, pk):
        job = get_object_or_404(NotificationJob, pk=pk)
        job = retry_job(job, by=request.user)
        return Response(NotificationJobSerializer(job).data)


class NotificationJobCancelView(APIView):
    permission_classes = [IsAdminRole]

    def post(self, request, pk):
        job = get_object_or_404(NotificationJob, pk=pk)
        job = cancel_job(job, by=request.user)
        return Response(NotificationJobSerializer(job).data)
