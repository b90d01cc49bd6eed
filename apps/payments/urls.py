from django.urls import path
from rest_framework.routers import DefaultRouter

from .views import CaptureOrderView, CreateOrderView, LegacyCaptureView, PaymentViewSet

router = DefaultRouter()
router.register("history", PaymentViewSet, basename="payment")

urlpatterns = [
    path("orders/", CreateOrderView.as_view(), name="payment-create-order"),
    path("orders/capture/", CaptureOrderView.as_view(), name="payment-capture-order"),
    path("capture/", LegacyCaptureView.as_view(), name="payment-legacy-capture"),
] + router.urls
