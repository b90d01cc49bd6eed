from django.urls import path
from rest_framework.routers import DefaultRouter

from .views import CommissionViewSet, PayoutRequestView, PayoutViewSet, SettlementView

router = DefaultRouter()
router.register("commissions", CommissionViewSet, basename="commission")
router.register("payouts", PayoutViewSet, basename="payout")

urlpatterns = router.urls + [
    path("settlements/", SettlementView.as_view(), name="settlements"),
    path("payout-requests/", PayoutRequestView.as_view(), name="payout-requests"),
]
