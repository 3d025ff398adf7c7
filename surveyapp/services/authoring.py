# surveyapp/services/authoring.py
from __future__ import annotations

import logging
import re
import secrets
import string
from dataclasses import dataclass, field
from typing import Sequence, TypeVar

from django.conf import settings
from django.db import transaction
from django.db.models import F, Max
from django.utils import timezone
from django.utils.translation import gettext_lazy as _

from surveyapp.exceptions import Conflict, InvalidInput
from surveyapp.models import Option, Question, Test, TestVersion
from surveyapp.services.links import latest_version

logger = logging.getLogger(__name__)

T = TypeVar("T")

UP = "up"
DOWN = "down"

_SLUG_STRIP = re.compile(r"[^a-z0-9\s-]")
_SLUG_SPACES = re.compile(r"\s+")
_SUFFIX_ALPHABET = string.ascii_lowercase + string.digits

# Offset used to park ord values while siblings are renumbered under the unique constraint.
_ORD_PARKING_OFFSET = 1_000_000


@dataclass
class QuestionDraft:
    text: str
    kind: str = Question.Kind.SINGLE
    options: list[str] = field(default_factory=list)


@dataclass
class TestDraft:
    title: str
    description: str = ""
    questions: list[QuestionDraft] = field(default_factory=list)


def validate_draft(draft: TestDraft) -> None:
    """Raise InvalidInput naming the first violated rule; nothing is written before this passes."""
    if not (draft.title or "").strip():
        raise InvalidInput(_("Enter a test title."))
    if not draft.questions:
        raise InvalidInput(_("Add at least one question."))

    for question in draft.questions:
        if not (question.text or "").strip():
            raise InvalidInput(_("Fill in all question texts."))
        if question.kind == Question.Kind.SINGLE:
            if len(question.options) < 2:
                raise InvalidInput(_("Choice questions need at least two options."))
            if any(not (option or "").strip() for option in question.options):
                raise InvalidInput(_("Fill in all answer options."))


def make_slug(title: str) -> str:
    base = _SLUG_STRIP.sub("", title.strip().lower())
    base = _SLUG_SPACES.sub("-", base)
    length = getattr(settings, "SURVEY_SLUG_SUFFIX_LENGTH", 6)
    suffix = "".join(secrets.choice(_SUFFIX_ALPHABET) for _ in range(length))
    return f"{base}-{suffix}"


def move_draft(items: Sequence[T], index: int, direction: str) -> list[T]:
    """Return a copy with items[index] moved one step; moves past either end are no-ops."""
    result = list(items)
    if index < 0 or index >= len(result):
        return result
    target = index - 1 if direction == UP else index + 1
    if target < 0 or target >= len(result):
        return result
    result.insert(target, result.pop(index))
    return result


@transaction.atomic
def create_test(draft: TestDraft, created_by=None) -> Test:
    validate_draft(draft)

    test = Test.objects.create(
        title=draft.title.strip(),
        slug=make_slug(draft.title),
        description=(draft.description or "").strip(),
        status=Test.Status.DRAFT,
        created_by=created_by,
    )
    version = TestVersion.objects.create(test=test, version=1)

    _insert_questions(version, draft.questions)

    logger.info(
        "Created test %s (%s) with %d questions",
        test.slug,
        test.id,
        len(draft.questions),
    )
    return test


def _insert_questions(version: TestVersion, drafts: Sequence[QuestionDraft]) -> list[Question]:
    questions = Question.objects.bulk_create(
        [
            Question(
                test_version=version,
                text=draft.text.strip(),
                kind=draft.kind,
                ord=idx,
            )
            for idx, draft in enumerate(drafts, start=1)
        ]
    )

    options = [
        Option(question=question, text=text.strip(), ord=idx)
        for question, draft in zip(questions, drafts)
        if draft.kind == Question.Kind.SINGLE
        for idx, text in enumerate(draft.options, start=1)
    ]
    if options:
        Option.objects.bulk_create(options)

    return questions


def update_test(test: Test, *, title: str | None = None, description: str | None = None) -> Test:
    update_fields = ["updated_at"]

    if title is not None:
        title = title.strip()
        if not title:
            raise InvalidInput(_("Enter a test title."))
        test.title = title
        update_fields.append("title")

    if description is not None:
        test.description = description.strip()
        update_fields.append("description")

    test.save(update_fields=update_fields)
    return test


@transaction.atomic
def create_next_version(test: Test) -> TestVersion:
    """Open a new draft version, copying the questions of the latest version."""
    test = Test.objects.select_for_update().get(pk=test.pk)

    if test.versions.filter(published_at__isnull=True).exists():
        raise Conflict(_("This test already has an unpublished draft version."))

    source = latest_version(test)
    next_number = (test.versions.aggregate(Max("version"))["version__max"] or 0) + 1
    version = TestVersion.objects.create(test=test, version=next_number)

    drafts = [
        QuestionDraft(
            text=question.text,
            kind=question.kind,
            options=[option.text for option in question.options.all()],
        )
        for question in source.questions.prefetch_related("options").order_by("ord")
    ]
    _insert_questions(version, drafts)

    logger.info("Opened draft v%d for test %s from v%d", next_number, test.slug, source.version)
    return version


@transaction.atomic
def publish_version(test: Test) -> TestVersion:
    version = (
        test.versions.select_for_update()
        .filter(published_at__isnull=True)
        .order_by("-version")
        .first()
    )
    if version is None:
        raise Conflict(_("There is no draft version to publish."))

    version.published_at = timezone.now()
    version.save(update_fields=["published_at"])

    if test.status != Test.Status.PUBLISHED:
        test.status = Test.Status.PUBLISHED
        test.save(update_fields=["status", "updated_at"])

    logger.info("Published test %s v%d", test.slug, version.version)
    return version


def _ensure_draft(version: TestVersion) -> None:
    if not version.is_draft:
        raise Conflict(_("Published versions cannot be changed."))


def _locked_version(question: Question) -> TestVersion:
    # Fresh row, locked against a concurrent publish_version.
    version = TestVersion.objects.select_for_update().get(pk=question.test_version_id)
    _ensure_draft(version)
    return version


def renumber(queryset, ordered_ids: Sequence) -> None:
    """Rewrite ord as 1..n following ordered_ids."""
    queryset.update(ord=F("ord") + _ORD_PARKING_OFFSET)
    for idx, pk in enumerate(ordered_ids, start=1):
        queryset.filter(pk=pk).update(ord=idx)


@transaction.atomic
def move_question(question: Question, direction: str) -> list[Question]:
    version = _locked_version(question)

    siblings = list(version.questions.order_by("ord").values_list("pk", flat=True))
    index = siblings.index(question.pk)
    reordered = move_draft(siblings, index, direction)

    if reordered != siblings:
        renumber(version.questions.all(), reordered)

    return list(version.questions.order_by("ord"))


@transaction.atomic
def remove_question(question: Question) -> list[Question]:
    version = _locked_version(question)

    if question.answers.exists():
        raise Conflict(_("Questions that already have answers cannot be removed."))
    if version.questions.count() <= 1:
        raise InvalidInput(_("Add at least one question."))

    question.options.all().delete()
    question.delete()

    remaining = list(version.questions.order_by("ord").values_list("pk", flat=True))
    renumber(version.questions.all(), remaining)

    return list(version.questions.order_by("ord"))
