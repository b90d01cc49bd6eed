from __future__ import annotations

import logging
from typing import Callable

from django.http import HttpRequest, HttpResponse

logger = logging.getLogger(__name__)


class ActivityLogMiddleware:
    def __init__(self, get_response: Callable[[HttpRequest], HttpResponse]) -> None:
        self.get_response = get_response

    def __call__(self, request: HttpRequest) -> HttpResponse:
        response = self.get_response(request)
        if request.method in ("GET", "HEAD", "OPTIONS"):
            return response
        try:
            from apps.analytics.services import log_activity

            user = getattr(request, "user", None)
            if user is not None and user.is_authenticated:
                resolver_match = getattr(request, "resolver_match", None)
                log_activity(
                    action=request.path,
                    user=user,
                    entity_type=resolver_match.view_name if resolver_match else None,
                    ip_address=request.META.get("REMOTE_ADDR"),
                    user_agent=request.META.get("HTTP_USER_AGENT", ""),
                    metadata={
                        "method": request.method,
                        "status_code": response.status_code,
                    },
                )
        except Exception:  # noqa: BLE001
            # Audit logging failures must not break the request cycle.
            logger.exception("Failed to write activity log for %s", request.path)
        return response
