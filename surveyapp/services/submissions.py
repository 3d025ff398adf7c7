from __future__ import annotations

import logging
from typing import Any, Mapping, Sequence

from django.conf import settings
from django.db import transaction
from django.utils.translation import gettext_lazy as _

from surveyapp.exceptions import InvalidInput
from surveyapp.models import Answer, Question, Submission, TestVersion

logger = logging.getLogger(__name__)


def normalize_answers(questions: Sequence[Question], answers: Mapping[str, Any]) -> dict[str, Any]:
    """Key answers by question id string; optionally fill unanswered choice questions with their first option."""
    normalized = {str(key): value for key, value in (answers or {}).items()}

    if not getattr(settings, "SURVEY_DEFAULT_FIRST_OPTION", False):
        return normalized

    for question in questions:
        key = str(question.id)
        if question.kind != Question.Kind.SINGLE or normalized.get(key):
            continue
        options = sorted(question.options.all(), key=lambda option: option.ord)
        if options:
            normalized[key] = str(options[0].id)

    return normalized


def _selected_option(question: Question, value: Any):
    if not value:
        return None
    for option in question.options.all():
        if str(option.id) == str(value):
            return option
    return None


@transaction.atomic
def record_submission(
    version: TestVersion,
    questions: Sequence[Question],
    participant: str,
    answers: Mapping[str, Any],
) -> Submission:
    """
    Store one participant's answers to every question of a version.

    `questions` must come with their options prefetched. All checks run
    before the first insert.
    """
    participant = (participant or "").strip()
    if not participant:
        raise InvalidInput(_("Enter your name or participant code."))

    answers = normalize_answers(questions, answers)

    selected = {}
    for question in questions:
        if question.kind != Question.Kind.SINGLE:
            continue
        option = _selected_option(question, answers.get(str(question.id)))
        if option is None:
            raise InvalidInput(_("Please answer all multiple-choice questions."))
        selected[question.id] = option

    texts = {}
    for question in questions:
        if question.kind != Question.Kind.TEXT:
            continue
        value = answers.get(str(question.id))
        text = value.strip() if isinstance(value, str) else ""
        if not text:
            raise InvalidInput(_("Please fill in all text answers."))
        texts[question.id] = text

    submission = Submission.objects.create(test_version=version, participant=participant)

    Answer.objects.bulk_create(
        [
            Answer(
                submission=submission,
                question=question,
                option=selected.get(question.id),
                free_text=texts.get(question.id),
            )
            for question in questions
        ]
    )

    logger.info(
        "Recorded submission %s for version %s (%d answers)",
        submission.id,
        version.id,
        len(questions),
    )
    return submission
