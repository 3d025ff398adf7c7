from __future__ import annotations

from django.utils.translation import gettext_lazy as _
from rest_framework import permissions

from .models import Profile


def is_survey_admin(user) -> bool:
    """
    Single source of truth for administrative access.

    The profile flag is read on every call; a user without a profile is not an admin.
    """
    if user is None or not user.is_authenticated:
        return False
    return Profile.objects.filter(user_id=user.pk, is_admin=True).exists()


class IsSurveyAdmin(permissions.BasePermission):
    message = _("Administrator access required.")

    def has_permission(self, request, view) -> bool:
        return is_survey_admin(request.user)
