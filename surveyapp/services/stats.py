"""
Aggregation over the submissions of a test's latest version.

Everything is loaded once by `load_stats`; filtering, counting and CSV export
work on the loaded rows and never query again.
"""
from __future__ import annotations

import csv
import io
from dataclasses import dataclass, field
from datetime import date, datetime, time
from typing import Iterable, Sequence

from django.conf import settings
from django.utils import timezone
from django.utils.translation import gettext_lazy as _

from surveyapp.exceptions import InvalidInput, NotFound
from surveyapp.models import Answer, Question, Submission, Test, TestVersion
from surveyapp.services.links import latest_version, questions_with_options

CSV_HEADER = ("submission_id", "participant", "created_at")


@dataclass
class StatsSnapshot:
    test: Test
    version: TestVersion
    questions: list[Question]
    submissions: list[Submission]
    answers: list[Answer]


@dataclass
class SubmissionFilter:
    date_from: date | None = None
    date_to: date | None = None
    participant: str = ""

    def bounds(self) -> tuple[datetime | None, datetime | None]:
        # Inclusive local days in the configured TIME_ZONE.
        start = timezone.make_aware(datetime.combine(self.date_from, time.min)) if self.date_from else None
        end = timezone.make_aware(datetime.combine(self.date_to, time.max)) if self.date_to else None
        return start, end


@dataclass
class OptionCount:
    option_id: str
    text: str
    count: int = 0


@dataclass
class QuestionChart:
    question_id: str
    text: str
    ord: int
    options: list[OptionCount] = field(default_factory=list)


def load_stats(test: Test) -> StatsSnapshot:
    version = latest_version(test)
    questions = questions_with_options(version)
    submissions = list(version.submissions.order_by("-created_at"))

    answers: list[Answer] = []
    if submissions:
        answers = list(
            Answer.objects.filter(submission_id__in=[submission.id for submission in submissions])
        )

    return StatsSnapshot(
        test=test,
        version=version,
        questions=questions,
        submissions=submissions,
        answers=answers,
    )


def filter_submissions(submissions: Iterable[Submission], flt: SubmissionFilter) -> list[Submission]:
    start, end = flt.bounds()
    term = (flt.participant or "").strip().lower()

    result = []
    for submission in submissions:
        if start is not None and submission.created_at < start:
            continue
        if end is not None and submission.created_at > end:
            continue
        if term and term not in submission.participant.lower():
            continue
        result.append(submission)
    return result


def option_counts(question: Question, answers: Iterable[Answer], submission_ids: set) -> QuestionChart:
    chart = QuestionChart(
        question_id=str(question.id),
        text=question.text,
        ord=question.ord,
        options=[
            OptionCount(option_id=str(option.id), text=option.text)
            for option in sorted(question.options.all(), key=lambda option: option.ord)
        ],
    )
    by_id = {count.option_id: count for count in chart.options}

    for answer in answers:
        if answer.question_id != question.id or answer.submission_id not in submission_ids:
            continue
        if answer.option_id is None:
            continue
        count = by_id.get(str(answer.option_id))
        if count is not None:
            count.count += 1

    return chart


def build_charts(questions: Sequence[Question], answers: Sequence[Answer], submissions: Sequence[Submission]) -> list[QuestionChart]:
    submission_ids = {submission.id for submission in submissions}
    return [
        option_counts(question, answers, submission_ids)
        for question in questions
        if question.kind == Question.Kind.SINGLE
    ]


def summarize(submissions: Sequence[Submission]) -> dict:
    return {
        "total_submissions": len(submissions),
        "last_submission_at": max((s.created_at for s in submissions), default=None),
    }


def latest_submissions(submissions: Sequence[Submission], limit: int | None = None) -> list[Submission]:
    if limit is None:
        limit = getattr(settings, "SURVEY_LATEST_SUBMISSIONS", 20)
    return sorted(submissions, key=lambda s: s.created_at, reverse=True)[:limit]


def export_csv(submissions: Sequence[Submission]) -> str:
    if not submissions:
        raise InvalidInput(_("There are no submissions to export."))

    buffer = io.StringIO()
    writer = csv.writer(buffer, quoting=csv.QUOTE_ALL, lineterminator="\n")
    writer.writerow(CSV_HEADER)
    for submission in submissions:
        writer.writerow([str(submission.id), submission.participant, submission.created_at.isoformat()])

    # No trailing newline after the last row.
    return buffer.getvalue().rstrip("\n")


def csv_filename(slug: str, now: datetime | None = None) -> str:
    now = now or timezone.now()
    return f"stats_{slug}_{now.strftime('%Y%m%d_%H%M')}.csv"


def submission_detail(test: Test, submission_id) -> tuple[Submission, list[dict]]:
    submission = (
        Submission.objects.select_related("test_version")
        .filter(pk=submission_id, test_version__test=test)
        .first()
    )
    if submission is None:
        raise NotFound(_("Submission not found."))

    answers = {answer.question_id: answer for answer in submission.answers.select_related("option")}

    rows = []
    for question in questions_with_options(submission.test_version):
        answer = answers.get(question.id)
        rows.append(
            {
                "question_id": str(question.id),
                "ord": question.ord,
                "text": question.text,
                "kind": question.kind,
                "option_id": str(answer.option_id) if answer and answer.option_id else None,
                "option_text": answer.option.text if answer and answer.option else None,
                "free_text": answer.free_text if answer else None,
            }
        )

    return submission, rows
