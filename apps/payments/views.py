from django.conf import settings
from rest_framework import permissions, status, views, viewsets
from rest_framework.response import Response

from apps.affiliates.services import find_click
from apps.commissions.serializers import CommissionSerializer

from .gateway import GatewayError
from .models import Payment
from .serializers import CaptureOrderSerializer, CreateOrderSerializer, LegacyCaptureSerializer, PaymentSerializer
from .services import CaptureResult, capture_order, create_order, record_legacy_capture

RETRY_MESSAGE = "We couldn't complete your payment. Please try again."


def _cookie_click(request):
    return find_click(request.COOKIES.get(settings.ATTRIBUTION_COOKIE_NAME))


def _buyer(request):
    user = request.user
    return user if user.is_authenticated else None


def _gateway_failure() -> Response:
    return Response({"success": False, "message": RETRY_MESSAGE}, status=status.HTTP_502_BAD_GATEWAY)


def _capture_response(result: CaptureResult) -> Response:
    body = {
        "success": result.success,
        "payment": PaymentSerializer(result.payment).data,
        "commission": CommissionSerializer(result.commission).data if result.commission else None,
        "alreadyProcessed": result.already_processed,
    }
    return Response(body, status=status.HTTP_200_OK)


class CreateOrderView(views.APIView):
    permission_classes = [permissions.AllowAny]

    def post(self, request, *args, **kwargs):
        serializer = CreateOrderSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        try:
            payment, client_payload = create_order(
                product=serializer.validated_data["productId"],
                affiliate=serializer.validated_data.get("affiliateId"),
                click=_cookie_click(request),
                buyer=_buyer(request),
            )
        except GatewayError:
            return _gateway_failure()
        return Response(
            {"orderId": payment.order_id, "clientPayload": client_payload},
            status=status.HTTP_201_CREATED,
        )


class CaptureOrderView(views.APIView):
    permission_classes = [permissions.AllowAny]

    def post(self, request, *args, **kwargs):
        serializer = CaptureOrderSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        try:
            result = capture_order(
                serializer.validated_data["orderId"],
                affiliate=serializer.validated_data.get("affiliateId"),
                click=_cookie_click(request),
            )
        except GatewayError:
            return _gateway_failure()
        return _capture_response(result)


class LegacyCaptureView(views.APIView):
    """
    Records a payment the browser captured directly with PayPal.

    ``userId`` identifies the buyer. Attribution comes from ``affiliateId`` or
    the tracking cookie.
    """

    permission_classes = [permissions.AllowAny]

    def post(self, request, *args, **kwargs):
        serializer = LegacyCaptureSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        data = serializer.validated_data
        result = record_legacy_capture(
            order_id=data["orderID"],
            payer_id=data["payerID"],
            payment_id=data["paymentID"],
            amount=data["amount"],
            product=data["productId"],
            buyer=data.get("userId") or _buyer(request),
            affiliate=data.get("affiliateId"),
            click=_cookie_click(request),
        )
        return _capture_response(result)


class PaymentViewSet(viewsets.ReadOnlyModelViewSet):
    serializer_class = PaymentSerializer
    permission_classes = [permissions.IsAuthenticated]
    filterset_fields = ["status", "kind", "gateway"]
    ordering_fields = ["created_at", "amount"]

    def get_queryset(self):
        user = self.request.user
        role = getattr(user, "role", None)
        qs = Payment.objects.select_related("product")
        if role == "admin":
            return qs
        if role == "affiliate":
            return qs.filter(affiliate=user)
        return qs.none()
