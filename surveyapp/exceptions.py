import logging

from django.conf import settings
from django.db import DatabaseError
from django.utils.translation import gettext_lazy as _
from rest_framework import status
from rest_framework.exceptions import NotAuthenticated, PermissionDenied
from rest_framework.response import Response
from rest_framework.views import exception_handler

logger = logging.getLogger(__name__)

STORE_ERROR_MESSAGE = _("Could not reach the data store. Please try again later.")
LINK_UNAVAILABLE_MESSAGE = _("The link is invalid or the test has been disabled.")


class SurveyError(Exception):
    default_status_code = status.HTTP_400_BAD_REQUEST

    def __init__(self, detail, status_code: int | None = None):
        super().__init__(str(detail))
        self.detail = detail
        self.status_code = status_code or self.default_status_code


class InvalidInput(SurveyError):
    default_status_code = status.HTTP_400_BAD_REQUEST


class NotFound(SurveyError):
    default_status_code = status.HTTP_404_NOT_FOUND


class LinkUnavailable(NotFound):
    """Public-facing failure; never says whether the link exists."""

    def __init__(self):
        super().__init__(LINK_UNAVAILABLE_MESSAGE)


class Conflict(SurveyError):
    default_status_code = status.HTTP_409_CONFLICT


def api_exception_handler(exc, context):
    if isinstance(exc, SurveyError):
        return Response({"detail": exc.detail}, status=exc.status_code)

    if isinstance(exc, DatabaseError):
        view = context.get("view")
        logger.exception("Store error in %s", type(view).__name__ if view else "unknown view")
        return Response({"detail": STORE_ERROR_MESSAGE}, status=status.HTTP_503_SERVICE_UNAVAILABLE)

    response = exception_handler(exc, context)

    # Access guard failures send the client back to the login screen.
    if response is not None and isinstance(exc, (NotAuthenticated, PermissionDenied)):
        response.data["login_url"] = getattr(settings, "LOGIN_URL", "/login")

    return response
