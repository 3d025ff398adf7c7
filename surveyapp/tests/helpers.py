from surveyapp import models
from surveyapp.services.authoring import QuestionDraft, TestDraft, create_test
from surveyapp.services.links import ensure_link, latest_version, resolve_public_link
from surveyapp.services.submissions import record_submission

SINGLE = models.Question.Kind.SINGLE
TEXT = models.Question.Kind.TEXT


def make_user(email="admin@example.com", password="testpass123", is_admin=True):
    """is_admin=None leaves the user without a profile row."""
    user = models.User.objects.create_user(email=email, password=password)
    if is_admin is not None:
        models.Profile.objects.create(user=user, is_admin=is_admin)
    return user


def sample_draft(title="Mood check", questions=None):
    if questions is None:
        questions = [
            QuestionDraft(text="How do you feel?", kind=SINGLE, options=["Good", "So-so", "Bad"]),
            QuestionDraft(text="What happened today?", kind=TEXT),
        ]
    return TestDraft(title=title, description="Short daily survey", questions=questions)


def make_test(title="Mood check", questions=None, created_by=None):
    return create_test(sample_draft(title, questions), created_by=created_by)


def submit(test, participant, answers_by_text):
    """
    Record a submission against the latest version.

    answers_by_text maps question text to an option text (SINGLE) or free text (TEXT).
    """
    link, _created = ensure_link(latest_version(test))
    link, questions = resolve_public_link(link.public_id)

    answers = {}
    for question in questions:
        value = answers_by_text.get(question.text)
        if question.kind == SINGLE and value is not None:
            value = str(next(o.id for o in question.options.all() if o.text == value))
        answers[str(question.id)] = value

    return record_submission(link.test_version, questions, participant, answers)
