from django.urls import path

from .views import (
    ActivityLogListView,
    AdminStatsView,
    AffiliateAnalyticsView,
    AffiliateStatsView,
    RevenueAnalyticsView,
)

urlpatterns = [
    path("affiliate/stats/", AffiliateStatsView.as_view(), name="affiliate-stats"),
    path("affiliate/earnings/", AffiliateAnalyticsView.as_view(), name="affiliate-earnings"),
    path("admin/stats/", AdminStatsView.as_view(), name="admin-stats"),
    path("admin/revenue/", RevenueAnalyticsView.as_view(), name="admin-revenue"),
    path("activities/", ActivityLogListView.as_view(), name="activity-log"),
]
