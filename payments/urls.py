from django.urls import path
from .views import (
    PaymentSubmitView,
    PendingPaymentListView,
    PaymentVerifyView,
)

urlpatterns = [
    path("submit/", PaymentSubmitView.as_view(), name="payment-submit"),
    path("pending/", PendingPaymentListView.as_view(), name="payment-pending"),
    path("<int:pk>/verify/", PaymentVerifyView.as_view(), name="payment-verify"),
]
