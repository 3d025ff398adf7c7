from __future__ import annotations

import logging

from django.conf import settings
from django.db import IntegrityError, transaction
from django.db.models import F, Prefetch
from django.utils.translation import gettext_lazy as _

from surveyapp.exceptions import LinkUnavailable, NotFound
from surveyapp.models import Option, Question, Test, TestLink, TestVersion

logger = logging.getLogger(__name__)

DEFAULT_BASE_URL = "http://localhost:3000"


def get_test(slug: str) -> Test:
    test = Test.objects.filter(slug=slug).first()
    if test is None:
        raise NotFound(_("Test not found."))
    return test


def latest_version(test: Test) -> TestVersion:
    """
    A published version wins over a higher draft number; among published
    versions the most recently published one wins.
    """
    version = (
        TestVersion.objects.filter(test=test)
        .order_by(F("published_at").desc(nulls_last=True), "-version")
        .first()
    )
    if version is None:
        raise NotFound(_("This test has no versions."))
    return version


def ensure_link(version: TestVersion) -> tuple[TestLink, bool]:
    """Return (link, created). Safe against a concurrent insert for the same version."""
    link = TestLink.objects.filter(test_version=version).first()
    if link is not None:
        return link, False

    try:
        with transaction.atomic():
            link = TestLink.objects.create(test_version=version, is_active=True)
    except IntegrityError:
        # Someone else inserted the link between our check and our insert.
        return TestLink.objects.get(test_version=version), False

    logger.info("Issued public link %s for version %s", link.public_id, version.id)
    return link, True


def public_url(link: TestLink) -> str:
    base = (getattr(settings, "SURVEY_PUBLIC_BASE_URL", "") or "").strip() or DEFAULT_BASE_URL
    return f"{base.rstrip('/')}/t/{link.public_id}"


def set_link_active(link: TestLink, is_active: bool) -> TestLink:
    link.is_active = is_active
    link.save(update_fields=["is_active"])
    logger.info("Link %s is_active=%s", link.public_id, is_active)
    return link


def questions_with_options(version: TestVersion) -> list[Question]:
    return list(
        version.questions.order_by("ord").prefetch_related(
            Prefetch("options", queryset=Option.objects.order_by("ord"))
        )
    )


def resolve_public_link(public_id: str) -> tuple[TestLink, list[Question]]:
    link = (
        TestLink.objects.select_related("test_version__test")
        .filter(public_id=public_id, is_active=True)
        .first()
    )
    if link is None:
        raise LinkUnavailable()

    return link, questions_with_options(link.test_version)
