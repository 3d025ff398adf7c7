from __future__ import annotations

import logging

from django.db import transaction

from surveyapp.models import Answer, Option, Question, Submission, Test, TestLink, TestVersion

logger = logging.getLogger(__name__)


@transaction.atomic
def delete_test(test: Test) -> dict[str, int]:
    """
    Remove a test and everything it owns, children before parents.

    Foreign keys are PROTECT, so the order below is the only order that works.
    Steps with nothing to delete are skipped. Returns deleted row counts per table.
    """
    counts = {
        "answers": 0,
        "submissions": 0,
        "options": 0,
        "questions": 0,
        "links": 0,
        "versions": 0,
        "tests": 0,
    }

    version_ids = list(TestVersion.objects.filter(test=test).values_list("id", flat=True))

    if version_ids:
        submission_ids = list(
            Submission.objects.filter(test_version_id__in=version_ids).values_list("id", flat=True)
        )
        if submission_ids:
            counts["answers"], _ = Answer.objects.filter(submission_id__in=submission_ids).delete()
            counts["submissions"], _ = Submission.objects.filter(id__in=submission_ids).delete()

        question_ids = list(
            Question.objects.filter(test_version_id__in=version_ids).values_list("id", flat=True)
        )
        if question_ids:
            counts["options"], _ = Option.objects.filter(question_id__in=question_ids).delete()
            counts["questions"], _ = Question.objects.filter(id__in=question_ids).delete()

        counts["links"], _ = TestLink.objects.filter(test_version_id__in=version_ids).delete()
        counts["versions"], _ = TestVersion.objects.filter(id__in=version_ids).delete()

    counts["tests"], _ = Test.objects.filter(pk=test.pk).delete()

    logger.info("Deleted test %s: %s", test.slug, counts)
    return counts
