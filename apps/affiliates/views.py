
from django.conf import settings
from django.core.exceptions import ValidationError
from django.core.validators import validate_ipv46_address
from django.db.models import Count
from django.http import HttpRequest, HttpResponse, HttpResponseNotFound
from django.shortcuts import redirect
from django.views.decorators.http import require_GET
from rest_framework import mixins, status, viewsets
from rest_framework.decorators import action
from rest_framework.request import Request
from rest_framework.response import Response
from rest_framework.throttling import ScopedRateThrottle

from apps.authentication.permissions import IsAffiliate
from core.exceptions import LinkNotFound

from .models import ClickRecord, TrackingLink
from .serializers import ClickRecordSerializer, GenerateLinkSerializer, TrackingLinkSerializer
from .services import ClientMeta, create_link, record_click


class TrackingLinkViewSet(mixins.ListModelMixin, mixins.RetrieveModelMixin, viewsets.GenericViewSet):
    queryset = TrackingLink.objects.select_related("product", "affiliate").all()
    serializer_class = TrackingLinkSerializer
    permission_classes = [IsAffiliate]

    def get_queryset(self):
        return self.queryset.filter(affiliate=self.request.user).annotate(click_count=Count("clicks"))

    def get_throttles(self):
        if self.action == "generate":
            self.throttle_scope = "link_generation"
            return [ScopedRateThrottle()]
        return super().get_throttles()

    @action(detail=False, methods=["post"], url_path="generate")
    def generate(self, request: Request) -> Response:
        serializer = GenerateLinkSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        link = create_link(affiliate=request.user, product=serializer.validated_data["product_id"])
        return Response(
            {"message": "Link generated", "link": TrackingLinkSerializer(link).data},
            status=status.HTTP_201_CREATED,
        )

    @action(detail=True, methods=["get"])
    def clicks(self, request: Request, pk: str | None = None) -> Response:
        link = self.get_object()
        qs = ClickRecord.objects.select_related("link").filter(link=link)
        page = self.paginate_queryset(qs)
        return self.get_paginated_response(ClickRecordSerializer(page, many=True).data)


def _valid_ip(value: str | None) -> str | None:
    if not value:
        return None
    try:
        validate_ipv46_address(value)
    except ValidationError:
        return None
    return value


def _client_ip(request: HttpRequest) -> str | None:
    forwarded = request.META.get("HTTP_X_FORWARDED_FOR", "")
    candidate = _valid_ip(forwarded.split(",")[0].strip()) if forwarded else None
    return candidate or _valid_ip(request.META.get("REMOTE_ADDR"))


@require_GET
def handle_tracking_redirect(request: HttpRequest, slug: str) -> HttpResponse:
    client_meta = ClientMeta(
        ip_address=_client_ip(request),
        user_agent=request.META.get("HTTP_USER_AGENT", ""),
        referrer=request.META.get("HTTP_REFERER", ""),
    )
    try:
        click = record_click(slug, client_meta)
    except LinkNotFound:
        return HttpResponseNotFound("Link not found")

    response = redirect(click.link.destination_url)
    response.set_cookie(
        settings.ATTRIBUTION_COOKIE_NAME,
        str(click.click_id),
        max_age=settings.ATTRIBUTION_COOKIE_MAX_AGE,
        httponly=True,
        secure=request.is_secure(),
        samesite="Lax",
    )
    return response
