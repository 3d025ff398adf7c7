from datetime import timedelta
from unittest import mock

from django.test import TestCase, override_settings
from django.utils import timezone
from rest_framework.test import APIClient

from surveyapp import models
from surveyapp.exceptions import LINK_UNAVAILABLE_MESSAGE, LinkUnavailable, NotFound
from surveyapp.services import links
from surveyapp.services.authoring import QuestionDraft

from .helpers import SINGLE, TEXT, make_test, make_user


class LatestVersionTests(TestCase):
    def setUp(self):
        self.test = make_test()
        self.v1 = self.test.versions.get()

    def add_version(self, number, published_at=None):
        return models.TestVersion.objects.create(test=self.test, version=number, published_at=published_at)

    def test_highest_draft_when_nothing_published(self):
        v2 = self.add_version(2)
        self.assertEqual(links.latest_version(self.test), v2)

    def test_published_beats_higher_draft(self):
        now = timezone.now()
        self.v1.published_at = now
        self.v1.save()
        self.add_version(2)
        self.assertEqual(links.latest_version(self.test), self.v1)

    def test_most_recently_published_wins(self):
        now = timezone.now()
        self.v1.published_at = now
        self.v1.save()
        self.add_version(2, published_at=now - timedelta(days=1))
        self.add_version(3)
        self.assertEqual(links.latest_version(self.test), self.v1)

    def test_no_versions(self):
        empty = models.Test.objects.create(title="Empty", slug="empty-abc123")
        with self.assertRaises(NotFound):
            links.latest_version(empty)


class LinkIssuanceTests(TestCase):
    def setUp(self):
        self.test = make_test()
        self.version = self.test.versions.get()

    def test_issuing_twice_returns_same_public_id(self):
        first, created_first = links.ensure_link(self.version)
        second, created_second = links.ensure_link(self.version)

        self.assertTrue(created_first)
        self.assertFalse(created_second)
        self.assertEqual(first.public_id, second.public_id)
        self.assertTrue(first.is_active)
        self.assertEqual(models.TestLink.objects.count(), 1)

    def test_concurrent_insert_is_refetched(self):
        existing = models.TestLink.objects.create(test_version=self.version)

        # Existence check misses the row another request just inserted.
        with mock.patch.object(models.TestLink.objects, "filter") as filter_mock:
            filter_mock.return_value.first.return_value = None
            link, created = links.ensure_link(self.version)

        self.assertFalse(created)
        self.assertEqual(link.pk, existing.pk)
        self.assertEqual(models.TestLink.objects.count(), 1)

    @override_settings(SURVEY_PUBLIC_BASE_URL="https://tests.example.org/")
    def test_public_url(self):
        link, _ = links.ensure_link(self.version)
        self.assertEqual(links.public_url(link), f"https://tests.example.org/t/{link.public_id}")

    @override_settings(SURVEY_PUBLIC_BASE_URL="")
    def test_public_url_default_base(self):
        link, _ = links.ensure_link(self.version)
        self.assertEqual(links.public_url(link), f"http://localhost:3000/t/{link.public_id}")

    def test_toggle_keeps_public_id(self):
        link, _ = links.ensure_link(self.version)
        public_id = link.public_id

        links.set_link_active(link, False)
        link.refresh_from_db()
        self.assertFalse(link.is_active)
        self.assertEqual(link.public_id, public_id)

        links.set_link_active(link, True)
        link.refresh_from_db()
        self.assertTrue(link.is_active)
        self.assertEqual(link.public_id, public_id)


class PublicResolutionTests(TestCase):
    def setUp(self):
        self.questions = [
            QuestionDraft(text="Q1", kind=SINGLE, options=["a", "b"]),
            QuestionDraft(text="Q2", kind=TEXT),
            QuestionDraft(text="Q3", kind=SINGLE, options=["x", "y", "z"]),
            QuestionDraft(text="Q4", kind=TEXT),
        ]
        self.test = make_test(title="Round trip", questions=self.questions)
        self.link, _ = links.ensure_link(self.test.versions.get())

    def test_round_trip_keeps_order_and_options(self):
        link, questions = links.resolve_public_link(self.link.public_id)

        self.assertEqual(link.test_version.test, self.test)
        self.assertEqual([q.text for q in questions], ["Q1", "Q2", "Q3", "Q4"])
        self.assertEqual(
            [[o.text for o in q.options.all()] for q in questions],
            [["a", "b"], [], ["x", "y", "z"], []],
        )

    def test_disabled_and_missing_look_the_same(self):
        links.set_link_active(self.link, False)

        with self.assertRaises(LinkUnavailable) as disabled:
            links.resolve_public_link(self.link.public_id)
        with self.assertRaises(LinkUnavailable) as missing:
            links.resolve_public_link("does-not-exist")

        self.assertEqual(str(disabled.exception.detail), str(missing.exception.detail))


class LinkApiTests(TestCase):
    def setUp(self):
        self.client = APIClient()
        self.client.force_authenticate(user=make_user())
        self.test = make_test(title="Share me")

    def test_share_view_creates_link_once(self):
        first = self.client.get(f"/api/tests/{self.test.slug}/link/")
        second = self.client.get(f"/api/tests/{self.test.slug}/link/")

        self.assertEqual(first.status_code, 201)
        self.assertEqual(second.status_code, 200)
        self.assertEqual(first.data["public_id"], second.data["public_id"])
        self.assertEqual(first.data["version"], 1)
        self.assertTrue(first.data["public_url"].endswith(f"/t/{first.data['public_id']}"))

    def test_toggle_and_public_form(self):
        public_id = self.client.get(f"/api/tests/{self.test.slug}/link/").data["public_id"]

        anonymous = APIClient()
        response = anonymous.get(f"/api/t/{public_id}/")
        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.data["title"], "Share me")
        self.assertEqual([q["ord"] for q in response.data["questions"]], [1, 2])
        self.assertEqual([o["text"] for o in response.data["questions"][0]["options"]], ["Good", "So-so", "Bad"])

        response = self.client.patch(f"/api/tests/{self.test.slug}/link/", {"is_active": False}, format="json")
        self.assertEqual(response.status_code, 200)
        self.assertFalse(response.data["is_active"])
        self.assertEqual(response.data["public_id"], public_id)

        response = anonymous.get(f"/api/t/{public_id}/")
        self.assertEqual(response.status_code, 404)
        self.assertEqual(str(response.data["detail"]), str(LINK_UNAVAILABLE_MESSAGE))

    def test_unknown_public_id(self):
        response = APIClient().get("/api/t/unknown/")
        self.assertEqual(response.status_code, 404)
        self.assertEqual(str(response.data["detail"]), str(LINK_UNAVAILABLE_MESSAGE))
