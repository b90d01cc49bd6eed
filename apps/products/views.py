from rest_framework import mixins, permissions, status, viewsets
from rest_framework.decorators import action
from rest_framework.response import Response

from apps.authentication.permissions import IsAdmin, IsAdminOrAffiliate

from .models import Product
from .serializers import ProductReviewSerializer, ProductSerializer
from .services import review_product


class ProductViewSet(
    mixins.CreateModelMixin,
    mixins.ListModelMixin,
    mixins.RetrieveModelMixin,
    viewsets.GenericViewSet,
):
    """
    Affiliates submit products and see their own; admins see and review all.
    ``available`` lists approved products for anyone to promote.
    """

    queryset = Product.objects.select_related("owner").all()
    serializer_class = ProductSerializer
    permission_classes = [IsAdminOrAffiliate]
    filterset_fields = ["status", "category", "owner"]
    search_fields = ["title", "description"]
    ordering_fields = ["created_at", "price"]

    def get_queryset(self):
        qs = super().get_queryset()
        if self.action == "available":
            return qs.filter(status=Product.STATUS_APPROVED)
        user = self.request.user
        if getattr(user, "role", None) == "admin":
            return qs
        return qs.filter(owner=user)

    @action(detail=False, methods=["get"], permission_classes=[permissions.AllowAny])
    def available(self, request, *args, **kwargs):
        return self.list(request, *args, **kwargs)

    @action(detail=False, methods=["get"], permission_classes=[IsAdmin])
    def pending(self, request, *args, **kwargs):
        qs = self.filter_queryset(self.get_queryset().filter(status=Product.STATUS_PENDING))
        page = self.paginate_queryset(qs)
        serializer = self.get_serializer(page, many=True)
        return self.get_paginated_response(serializer.data)

    @action(detail=True, methods=["post"], permission_classes=[IsAdmin])
    def review(self, request, pk=None):
        serializer = ProductReviewSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        product, changed = review_product(
            self.get_object(),
            approve=serializer.validated_data["action"] == "approve",
            reviewer=request.user,
        )
        return Response(
            {
                "message": f"Product {product.status}",
                "changed": changed,
                "product": ProductSerializer(product).data,
            },
            status=status.HTTP_200_OK,
        )
