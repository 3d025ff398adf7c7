from django.urls import path
from rest_framework_simplejwt.views import TokenRefreshView

from .views import (
    LoginView,
    LogoutView,
    MeView,
    PublicSubmitView,
    PublicTestView,
    QuestionDeleteView,
    QuestionMoveView,
    SessionView,
    SubmissionDetailView,
    TestDetailView,
    TestLinkView,
    TestListCreateView,
    TestStatsExportView,
    TestStatsView,
    TestVersionCreateView,
    TestVersionPublishView,
)

urlpatterns = [
    path("auth/login/", LoginView.as_view(), name="auth_login"),
    path("auth/logout/", LogoutView.as_view(), name="auth_logout"),
    path("auth/token/refresh/", TokenRefreshView.as_view(), name="token_refresh"),
    path("auth/session/", SessionView.as_view(), name="auth_session"),
    path("user/", MeView.as_view(), name="user"),
    path("tests/", TestListCreateView.as_view(), name="test_list"),
    path("tests/<slug:slug>/", TestDetailView.as_view(), name="test_detail"),
    path("tests/<slug:slug>/versions/", TestVersionCreateView.as_view(), name="test_version_create"),
    path("tests/<slug:slug>/versions/publish/", TestVersionPublishView.as_view(), name="test_version_publish"),
    path(
        "tests/<slug:slug>/questions/<uuid:question_id>/",
        QuestionDeleteView.as_view(),
        name="question_delete",
    ),
    path(
        "tests/<slug:slug>/questions/<uuid:question_id>/move/",
        QuestionMoveView.as_view(),
        name="question_move",
    ),
    path("tests/<slug:slug>/link/", TestLinkView.as_view(), name="test_link"),
    path("tests/<slug:slug>/stats/", TestStatsView.as_view(), name="test_stats"),
    path("tests/<slug:slug>/stats/export/", TestStatsExportView.as_view(), name="test_stats_export"),
    path(
        "tests/<slug:slug>/submissions/<uuid:submission_id>/",
        SubmissionDetailView.as_view(),
        name="submission_detail",
    ),
    path("t/<str:public_id>/", PublicTestView.as_view(), name="public_test"),
    path("t/<str:public_id>/submit/", PublicSubmitView.as_view(), name="public_submit"),
]
