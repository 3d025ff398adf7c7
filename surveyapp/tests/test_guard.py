from unittest import mock

from django.db import DatabaseError
from django.test import TestCase
from rest_framework.test import APIClient

from surveyapp import models
from surveyapp.exceptions import STORE_ERROR_MESSAGE
from surveyapp.permissions import is_survey_admin

from .helpers import make_test, make_user


class AdminCheckTests(TestCase):
    def test_profile_flag_decides(self):
        self.assertTrue(is_survey_admin(make_user("a@example.com", is_admin=True)))
        self.assertFalse(is_survey_admin(make_user("b@example.com", is_admin=False)))
        self.assertFalse(is_survey_admin(make_user("c@example.com", is_admin=None)))

    def test_flag_is_read_fresh(self):
        user = make_user(is_admin=False)
        self.assertFalse(is_survey_admin(user))
        models.Profile.objects.filter(user=user).update(is_admin=True)
        self.assertTrue(is_survey_admin(user))


class GuardApiTests(TestCase):
    def setUp(self):
        self.client = APIClient()

    def test_anonymous_is_sent_to_login(self):
        response = self.client.get("/api/tests/")
        self.assertEqual(response.status_code, 401)
        self.assertEqual(response.data["login_url"], "/login")

    def test_non_admin_is_refused(self):
        self.client.force_authenticate(user=make_user(is_admin=False))
        response = self.client.get("/api/tests/")
        self.assertEqual(response.status_code, 403)
        self.assertEqual(response.data["login_url"], "/login")
        self.assertEqual(str(response.data["detail"]), "Administrator access required.")

    def test_user_without_profile_is_refused(self):
        self.client.force_authenticate(user=make_user(is_admin=None))
        response = self.client.get("/api/tests/")
        self.assertEqual(response.status_code, 403)

    def test_admin_passes(self):
        make_test(title="Visible")
        self.client.force_authenticate(user=make_user())
        response = self.client.get("/api/tests/")
        self.assertEqual(response.status_code, 200)
        self.assertEqual([row["title"] for row in response.data], ["Visible"])

    def test_public_form_needs_no_login(self):
        response = self.client.get("/api/t/whatever/")
        self.assertEqual(response.status_code, 404)
        self.assertNotIn("login_url", response.data)


class SessionApiTests(TestCase):
    def setUp(self):
        self.client = APIClient()
        make_user("admin@example.com", password="testpass123")
        make_user("kid@example.com", password="testpass123", is_admin=False)

    def login(self, email):
        response = self.client.post(
            "/api/auth/login/", {"email": email, "password": "testpass123"}, format="json"
        )
        self.assertEqual(response.status_code, 200)
        return response.data

    def test_login_returns_token_pair(self):
        tokens = self.login("admin@example.com")
        self.assertIn("access", tokens)
        self.assertIn("refresh", tokens)

    def test_wrong_password(self):
        response = self.client.post(
            "/api/auth/login/", {"email": "admin@example.com", "password": "nope"}, format="json"
        )
        self.assertEqual(response.status_code, 401)

    def test_session_reports_authorization(self):
        response = self.client.get("/api/auth/session/")
        self.assertEqual(response.data, {"authenticated": False, "authorized": False, "email": None})

        tokens = self.login("kid@example.com")
        self.client.credentials(HTTP_AUTHORIZATION=f"Bearer {tokens['access']}")
        response = self.client.get("/api/auth/session/")
        self.assertEqual(response.data, {"authenticated": True, "authorized": False, "email": "kid@example.com"})

        tokens = self.login("admin@example.com")
        self.client.credentials(HTTP_AUTHORIZATION=f"Bearer {tokens['access']}")
        response = self.client.get("/api/auth/session/")
        self.assertTrue(response.data["authorized"])

        response = self.client.get("/api/user/")
        self.assertEqual(response.data["email"], "admin@example.com")
        self.assertTrue(response.data["is_admin"])

    def test_logout_revokes_refresh_token(self):
        tokens = self.login("admin@example.com")

        response = self.client.post("/api/auth/logout/", {"refresh": tokens["refresh"]}, format="json")
        self.assertEqual(response.status_code, 200)

        response = self.client.post("/api/auth/token/refresh/", {"refresh": tokens["refresh"]}, format="json")
        self.assertEqual(response.status_code, 401)


class StoreErrorTests(TestCase):
    def test_store_failure_is_logged_and_reported(self):
        client = APIClient()
        client.force_authenticate(user=make_user())
        test = make_test()

        with mock.patch.object(models.Test.objects, "filter", side_effect=DatabaseError("connection refused")):
            with self.assertLogs("surveyapp.exceptions", level="ERROR"):
                response = client.get(f"/api/tests/{test.slug}/")

        self.assertEqual(response.status_code, 503)
        self.assertEqual(str(response.data["detail"]), str(STORE_ERROR_MESSAGE))
