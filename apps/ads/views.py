from rest_framework import permissions, status, viewsets
from rest_framework.decorators import action
from rest_framework.response import Response

from apps.authentication.permissions import IsAdmin

from .models import Ad
from .serializers import AdSerializer, PublicAdSerializer
from .services import choose_ad, record_ad_click, record_impression


class AdViewSet(viewsets.ModelViewSet):
    """
    Admin CRUD for ads. ``random`` serves one active ad to anyone and counts
    the impression; ``click`` counts a click and returns the target URL.
    """

    queryset = Ad.objects.all()
    serializer_class = AdSerializer
    permission_classes = [IsAdmin]
    filterset_fields = ["is_active"]
    ordering_fields = ["created_at", "weight", "impressions", "clicks"]

    @action(detail=False, methods=["get"], permission_classes=[permissions.AllowAny])
    def random(self, request, *args, **kwargs):
        ad = choose_ad()
        if ad is None:
            return Response(status=status.HTTP_204_NO_CONTENT)
        record_impression(ad)
        return Response(PublicAdSerializer(ad).data)

    @action(detail=True, methods=["post"], permission_classes=[permissions.AllowAny])
    def click(self, request, pk=None):
        ad = self.get_object()
        return Response({"target_url": record_ad_click(ad)})

    def get_queryset(self):
        qs = super().get_queryset()
        if self.action == "click":
            return qs.filter(is_active=True)
        return qs
