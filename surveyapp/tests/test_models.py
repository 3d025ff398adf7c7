from django.db import IntegrityError, transaction
from django.test import TestCase

from surveyapp import models

from .helpers import TEXT, make_test, make_user


class UserModelTests(TestCase):
    def test_email_is_normalized_and_username_optional(self):
        user = models.User.objects.create_user(email="  Admin@Example.COM ", password="testpass123")
        self.assertEqual(user.email, "admin@example.com")
        self.assertIsNone(user.username)
        self.assertTrue(user.check_password("testpass123"))

    def test_superuser_gets_admin_profile(self):
        user = models.User.objects.create_superuser(email="root@example.com", password="testpass123")
        self.assertTrue(user.is_staff)
        self.assertTrue(user.profile.is_admin)

    def test_create_user_without_email_fails(self):
        with self.assertRaises(ValueError):
            models.User.objects.create_user(email="", password="x")


class SurveyModelTests(TestCase):
    def setUp(self):
        self.admin = make_user()
        self.test = make_test(created_by=self.admin)
        self.version = self.test.versions.get()

    def test_new_test_defaults(self):
        self.assertEqual(self.test.status, models.Test.Status.DRAFT)
        self.assertEqual(self.version.version, 1)
        self.assertTrue(self.version.is_draft)
        self.assertEqual(self.test.created_by, self.admin)
        self.assertEqual(str(self.test), "Mood check")

    def test_version_number_unique_per_test(self):
        with self.assertRaises(IntegrityError), transaction.atomic():
            models.TestVersion.objects.create(test=self.test, version=1)

    def test_question_ord_unique_within_version(self):
        with self.assertRaises(IntegrityError), transaction.atomic():
            models.Question.objects.create(test_version=self.version, text="Dup", kind=TEXT, ord=1)

    def test_only_one_link_per_version(self):
        models.TestLink.objects.create(test_version=self.version)
        with self.assertRaises(IntegrityError), transaction.atomic():
            models.TestLink.objects.create(test_version=self.version)

    def test_public_ids_are_long_and_distinct(self):
        ids = {models.generate_public_id() for _ in range(100)}
        self.assertEqual(len(ids), 100)
        self.assertTrue(all(len(public_id) >= 20 for public_id in ids))

    def test_answer_needs_exactly_one_of_option_or_text(self):
        question = self.version.questions.get(ord=1)
        option = question.options.get(ord=1)
        submission = models.Submission.objects.create(test_version=self.version, participant="Kid")

        with self.assertRaises(IntegrityError), transaction.atomic():
            models.Answer.objects.create(submission=submission, question=question)

        with self.assertRaises(IntegrityError), transaction.atomic():
            models.Answer.objects.create(
                submission=submission, question=question, option=option, free_text="both"
            )

        models.Answer.objects.create(submission=submission, question=question, option=option)
        self.assertEqual(submission.answers.count(), 1)


class AdminSiteTests(TestCase):
    def setUp(self):
        self.root = models.User.objects.create_superuser(email="root@example.com", password="testpass123")
        self.client.force_login(self.root)
        self.test = make_test(created_by=self.root)

    def test_changelists_render(self):
        for url in (
            "/admin/surveyapp/user/",
            "/admin/surveyapp/test/",
            "/admin/surveyapp/question/",
            "/admin/surveyapp/testlink/",
            "/admin/surveyapp/submission/",
        ):
            with self.subTest(url=url):
                self.assertEqual(self.client.get(url).status_code, 200)

    def test_tests_cannot_be_deleted_from_admin(self):
        response = self.client.get(f"/admin/surveyapp/test/{self.test.pk}/delete/")
        self.assertEqual(response.status_code, 403)

    def test_add_user_through_admin(self):
        response = self.client.post(
            "/admin/surveyapp/user/add/",
            {
                "email": "New.Admin@Example.com",
                "password1": "kidsTests-2024!",
                "password2": "kidsTests-2024!",
                "usable_password": "true",
                "profile-TOTAL_FORMS": "0",
                "profile-INITIAL_FORMS": "0",
            },
        )
        self.assertEqual(response.status_code, 302)

        user = models.User.objects.get(email="new.admin@example.com")
        self.assertTrue(user.check_password("kidsTests-2024!"))
        self.assertIsNone(user.username)
        self.assertEqual(self.client.get(f"/admin/surveyapp/user/{user.pk}/change/").status_code, 200)
