"""Project-wide DRF exception handling.

Every error leaves the API as ``{"success": false, "message": ...}``; validation
errors additionally carry their per-field detail under ``errors``.
"""

import logging

from rest_framework import exceptions, status
from rest_framework.response import Response
from rest_framework.views import exception_handler

logger = logging.getLogger(__name__)


def _first_message(detail) -> str:
    """Pull a single human readable message out of a nested DRF error detail."""
    if isinstance(detail, dict):
        for value in detail.values():
            return _first_message(value)
        return "Invalid request"
    if isinstance(detail, (list, tuple)):
        for value in detail:
            return _first_message(value)
        return "Invalid request"
    return str(detail)


def api_exception_handler(exc, context):
    response = exception_handler(exc, context)

    if response is None:
        # not an APIException / Http404 / PermissionDenied: a bug or an outage
        view = context.get("view")
        logger.exception("Unhandled error in %s", type(view).__name__ if view else "view")
        return Response(
            {"success": False, "message": "Internal server error"},
            status=status.HTTP_500_INTERNAL_SERVER_ERROR,
        )

    if isinstance(exc, exceptions.NotAuthenticated):
        response.data = {"success": False, "message": "Not authorized"}
        return response

    if isinstance(exc, exceptions.ValidationError):
        response.data = {
            "success": False,
            "message": _first_message(exc.detail),
            "errors": exc.detail,
        }
        return response

    detail = getattr(exc, "detail", None)
    response.data = {
        "success": False,
        "message": _first_message(detail) if detail is not None else "Request failed",
    }
    return response
