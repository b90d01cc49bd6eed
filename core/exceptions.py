"""
Domain errors shared by the services layer.

Services raise these; API views let them propagate and the DRF exception
handler below renders them as ``{"detail": ..., "code": ...}``.
"""

from __future__ import annotations

import logging

from rest_framework import status
from rest_framework.response import Response
from rest_framework.views import exception_handler

logger = logging.getLogger(__name__)


class DomainError(Exception):
    status_code = status.HTTP_400_BAD_REQUEST
    code = "error"
    default_message = "Request could not be processed."

    def __init__(self, message: str | None = None) -> None:
        self.message = message or self.default_message
        super().__init__(self.message)


class NotFound(DomainError):
    status_code = status.HTTP_404_NOT_FOUND
    code = "not_found"
    default_message = "Not found."


class LinkNotFound(NotFound):
    code = "link_not_found"
    default_message = "Link not found"


class OrderNotFound(NotFound):
    code = "order_not_found"
    default_message = "Order not found."


class ProductNotFound(NotFound):
    code = "product_not_found"
    default_message = "Product not found."


class ProductNotEligible(DomainError):
    status_code = status.HTTP_409_CONFLICT
    code = "product_not_eligible"
    default_message = "Product is not approved for promotion."


class InvalidInput(DomainError):
    code = "invalid_input"
    default_message = "Invalid input."


class GatewayError(DomainError):
    """The payment processor failed or timed out. Safe to retry."""

    status_code = status.HTTP_502_BAD_GATEWAY
    code = "gateway_error"
    default_message = "Payment provider error."


def api_exception_handler(exc, context):
    if isinstance(exc, DomainError):
        if exc.status_code >= 500:
            logger.warning("%s in %s: %s", type(exc).__name__, context.get("view"), exc.message)
        return Response({"detail": exc.message, "code": exc.code}, status=exc.status_code)
    return exception_handler(exc, context)
