from django.urls import path

from .views import (
    ActionLinkView,
    ActionTokenIssueView,
    AppointmentCancelView,
    AppointmentCompleteView,
    AppointmentCreateView,
    AppointmentLookupView,
    AvailabilityView,
    NotificationJobCancelView,
    NotificationJobListView,
    NotificationJobRetryView,
)

urlpatterns = [
    # Availability
    path('availability/', AvailabilityView.as_view(), name='availability'),

    # Appointments
    path('appointments/', AppointmentCreateView.as_view(), name='appointment-create'),
    path('appointments/<int:pk>/cancel/', AppointmentCancelView.as_view(), name='appointment-cancel'),
    path('appointments/<int:pk>/complete/', AppointmentCompleteView.as_view(), name='appointment-complete'),
    path('appointments/<int:pk>/action-tokens/', ActionTokenIssueView.as_view(), name='appointment-action-token'),
    path('appointments/<str:confirmation_number>/', AppointmentLookupView.as_view(), name='appointment-lookup'),

    # Self-service action links
    path('a/<str:token>/<str:action>/', ActionLinkView.as_view(), name='action-link'),

    # Notification jobs (admin)
    path('notification-jobs/', NotificationJobListView.as_view(), name='notification-job-list'),
    path('notification-jobs/<int:pk>/retry/', NotificationJobRetryView.as_view(), name='notification-job-retry'),
    path('notification-jobs/<int:pk>/cancel/', NotificationJobCancelView.as_view(), name='notification-job-cancel'),
]
