from decimal import Decimal

from django.conf import settings
from django.db.models import Count
from rest_framework import permissions, status, views, viewsets
from rest_framework.response import Response

from apps.analytics.services import log_activity
from apps.authentication.permissions import IsAdmin, IsAffiliate

from .models import Commission, Payout
from .serializers import CommissionSerializer, PayoutRequestSerializer, PayoutSerializer, SettlementRequestSerializer
from .services import PAYOUT_PROCESSED, request_payout, settle_pending, settlement_candidates


class CommissionViewSet(viewsets.ReadOnlyModelViewSet):
    serializer_class = CommissionSerializer
    permission_classes = [permissions.IsAuthenticated]
    filterset_fields = ["status", "affiliate", "is_recurring"]
    ordering_fields = ["created_at", "amount"]

    def get_queryset(self):
        user = self.request.user
        role = getattr(user, "role", None)
        qs = Commission.objects.select_related("payment", "product")
        if role == "admin":
            return qs
        if role == "affiliate":
            return qs.filter(affiliate=user)
        return qs.none()


class PayoutViewSet(viewsets.ReadOnlyModelViewSet):
    serializer_class = PayoutSerializer
    permission_classes = [permissions.IsAuthenticated]

    def get_queryset(self):
        user = self.request.user
        role = getattr(user, "role", None)
        qs = Payout.objects.all()
        if role == "admin":
            return qs
        if role == "affiliate":
            return qs.filter(affiliate=user)
        return qs.none()


class SettlementView(views.APIView):
    """
    GET: affiliates awaiting payout. POST: run settlement now.
    """

    permission_classes = [IsAdmin]

    def get(self, request, *args, **kwargs):
        users = list(settlement_candidates())
        pending_counts = dict(
            Commission.objects.filter(status=Commission.STATUS_PENDING, affiliate__in=[u.pk for u in users])
            .values_list("affiliate")
            .annotate(count=Count("id"))
            .order_by()
        )
        rows = [
            {
                "userId": str(u.pk),
                "email": u.email,
                "paypalEmail": u.paypal_email,
                "balance": str(u.commission_balance),
                "pendingCommissions": pending_counts.get(u.pk, 0),
            }
            for u in users
        ]
        total = sum((u.commission_balance for u in users), Decimal("0.00"))
        return Response(
            {
                "minimumAmount": str(settings.MINIMUM_PAYOUT_AMOUNT),
                "totalPendingAmount": str(total),
                "affiliates": rows,
            }
        )

    def post(self, request, *args, **kwargs):
        serializer = SettlementRequestSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        results = settle_pending(threshold=serializer.validated_data.get("minimum_amount"))

        processed = [r for r in results if r.status == PAYOUT_PROCESSED]
        total_amount = sum((r.amount for r in processed), Decimal("0.00"))
        log_activity(
            action="settlement_run",
            user=request.user,
            metadata={"processed": len(processed), "total": str(total_amount)},
        )
        return Response(
            {
                "success": True,
                "message": f"Processed payments for {len(processed)} users",
                "totalAmount": str(total_amount),
                "results": [r.as_dict() for r in results],
            },
            status=status.HTTP_200_OK,
        )


class PayoutRequestView(views.APIView):
    """Affiliate asks for an early payout; admins review it from the activity log."""

    permission_classes = [IsAffiliate]

    def post(self, request, *args, **kwargs):
        serializer = PayoutRequestSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        body = request_payout(
            request.user,
            serializer.validated_data["amount"],
            ip_address=request.META.get("REMOTE_ADDR"),
        )
        return Response(body, status=status.HTTP_201_CREATED)
