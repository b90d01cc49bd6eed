from rest_framework.routers import DefaultRouter

from .views import TrackingLinkViewSet

router = DefaultRouter()
router.register("links", TrackingLinkViewSet, basename="tracking-link")

urlpatterns = router.urls
