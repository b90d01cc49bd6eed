from rest_framework import generics, status, views
from rest_framework.response import Response

from apps.authentication.permissions import IsAdmin, IsAffiliate

from .models import ActivityLog
from .serializers import ActivityLogSerializer
from .services import admin_stats, affiliate_monthly_earnings, affiliate_stats, revenue_by_month


class AffiliateStatsView(views.APIView):
    permission_classes = [IsAffiliate]

    def get(self, request, *args, **kwargs):
        return Response(affiliate_stats(request.user), status=status.HTTP_200_OK)


class AdminStatsView(views.APIView):
    permission_classes = [IsAdmin]

    def get(self, request, *args, **kwargs):
        return Response(admin_stats(), status=status.HTTP_200_OK)


class AffiliateAnalyticsView(views.APIView):
    permission_classes = [IsAffiliate]

    def get(self, request, *args, **kwargs):
        return Response(affiliate_monthly_earnings(request.user), status=status.HTTP_200_OK)


class RevenueAnalyticsView(views.APIView):
    permission_classes = [IsAdmin]

    def get(self, request, *args, **kwargs):
        return Response(revenue_by_month(), status=status.HTTP_200_OK)


class ActivityLogListView(generics.ListAPIView):
    queryset = ActivityLog.objects.select_related("user").all()
    serializer_class = ActivityLogSerializer
    permission_classes = [IsAdmin]
    filterset_fields = ["entity_type", "user"]
