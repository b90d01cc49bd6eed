from django.contrib import admin
from django.urls import include, path
from drf_yasg import openapi
from drf_yasg.views import get_schema_view
from rest_framework import permissions

from apps.affiliates.views import handle_tracking_redirect

schema_view = get_schema_view(
    openapi.Info(title="Aceos API", default_version="v1"),
    public=True,
    permission_classes=[permissions.AllowAny],
)

urlpatterns = [
    path("admin/", admin.site.urls),
    # Public tracking/redirect endpoint for affiliate links
    path("t/<slug:slug>/", handle_tracking_redirect, name="tracking-redirect"),
    path("t/<slug:slug>", handle_tracking_redirect, name="tracking-redirect-bare"),
    path("api/auth/", include("apps.authentication.urls")),
    path("api/products/", include("apps.products.urls")),
    path("api/affiliates/", include("apps.affiliates.urls")),
    path("api/payments/", include("apps.payments.urls")),
    path("api/commissions/", include("apps.commissions.urls")),
    path("api/analytics/", include("apps.analytics.urls")),
    path("api/notifications/", include("apps.notifications.urls")),
    path("api/ads/", include("apps.ads.urls")),
    path("api/docs/", schema_view.with_ui("swagger", cache_timeout=0), name="api-docs"),
]
