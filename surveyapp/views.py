from django.db.models import Count, Exists, OuterRef
from django.http import HttpResponse
from django.shortcuts import get_object_or_404
from django.utils.translation import gettext_lazy as _
from rest_framework import generics, permissions, status
from rest_framework.filters import SearchFilter
from rest_framework.response import Response
from rest_framework.views import APIView
from rest_framework_simplejwt.views import TokenBlacklistView, TokenObtainPairView

from .exceptions import InvalidInput
from .models import Question, Test, TestVersion
from .permissions import IsSurveyAdmin, is_survey_admin
from .serializers import (
    PublicTestSerializer,
    QuestionChartSerializer,
    QuestionMoveSerializer,
    QuestionSerializer,
    StatsFilterSerializer,
    SubmissionSerializer,
    SubmitSerializer,
    TestCreateSerializer,
    TestDetailSerializer,
    TestLinkSerializer,
    TestLinkToggleSerializer,
    TestListSerializer,
    TestUpdateSerializer,
    TestVersionSerializer,
    UserSerializer,
)
from .services import authoring, deletion, links, stats, submissions


class LoginView(TokenObtainPairView):
    # With the custom User model (USERNAME_FIELD="email"),
    # this endpoint expects: {"email": "...", "password": "..."}
    permission_classes = [permissions.AllowAny]


class LogoutView(TokenBlacklistView):
    """POST {"refresh": "..."} -> the refresh token can no longer be used."""

    permission_classes = [permissions.AllowAny]


class SessionView(APIView):
    """
    GET /api/auth/session/ -> what the access guard resolved for this request.

    Clients keep protected screens in a loading state until "authorized" is true.
    """

    permission_classes = [permissions.AllowAny]

    def get(self, request):
        user = request.user
        authenticated = bool(user and user.is_authenticated)
        return Response(
            {
                "authenticated": authenticated,
                "authorized": is_survey_admin(user) if authenticated else False,
                "email": user.email if authenticated else None,
            }
        )


class MeView(generics.RetrieveAPIView):
    permission_classes = [permissions.IsAuthenticated]
    serializer_class = UserSerializer

    def get_object(self):
        return self.request.user


class TestListCreateView(generics.ListCreateAPIView):
    """
    GET  /api/tests/?search=...  -> dashboard rows, newest first
    POST /api/tests/             -> create test + version 1 + questions + options
    """

    permission_classes = [IsSurveyAdmin]
    filter_backends = (SearchFilter,)
    search_fields = ["title"]

    def get_queryset(self):
        return Test.objects.annotate(
            submissions_count=Count("versions__submissions"),
            has_version=Exists(TestVersion.objects.filter(test=OuterRef("pk"))),
        ).order_by("-created_at")

    def get_serializer_class(self):
        if self.request.method == "POST":
            return TestCreateSerializer
        return TestListSerializer

    def create(self, request, *args, **kwargs):
        create_ser = TestCreateSerializer(data=request.data)
        create_ser.is_valid(raise_exception=True)

        test = authoring.create_test(create_ser.to_draft(), created_by=request.user)

        return Response(TestDetailSerializer(test).data, status=status.HTTP_201_CREATED)


class TestDetailView(APIView):
    """
    GET    /api/tests/<slug>/
    PATCH  /api/tests/<slug>/               {"title": ..., "description": ...}
    DELETE /api/tests/<slug>/?confirm=true  -> irreversible cascade
    """

    permission_classes = [IsSurveyAdmin]

    def get(self, request, slug):
        test = links.get_test(slug)
        return Response(TestDetailSerializer(test).data)

    def patch(self, request, slug):
        test = links.get_test(slug)
        upd_ser = TestUpdateSerializer(data=request.data)
        upd_ser.is_valid(raise_exception=True)

        test = authoring.update_test(
            test,
            title=upd_ser.validated_data.get("title"),
            description=upd_ser.validated_data.get("description"),
        )
        return Response(TestDetailSerializer(test).data)

    def delete(self, request, slug):
        test = links.get_test(slug)

        if request.query_params.get("confirm", "").lower() not in ("1", "true", "yes"):
            raise InvalidInput(_("Deletion must be confirmed; it cannot be undone."))

        counts = deletion.delete_test(test)
        return Response({"deleted": counts}, status=status.HTTP_200_OK)


class TestVersionCreateView(APIView):
    """POST /api/tests/<slug>/versions/ -> new draft copied from the latest version."""

    permission_classes = [IsSurveyAdmin]

    def post(self, request, slug):
        test = links.get_test(slug)
        version = authoring.create_next_version(test)
        return Response(TestVersionSerializer(version).data, status=status.HTTP_201_CREATED)


class TestVersionPublishView(APIView):
    permission_classes = [IsSurveyAdmin]

    def post(self, request, slug):
        test = links.get_test(slug)
        version = authoring.publish_version(test)
        return Response(TestVersionSerializer(version).data, status=status.HTTP_200_OK)


class QuestionMoveView(APIView):
    permission_classes = [IsSurveyAdmin]

    def post(self, request, slug, question_id):
        test = links.get_test(slug)
        question = get_object_or_404(Question, id=question_id, test_version__test=test)

        move_ser = QuestionMoveSerializer(data=request.data)
        move_ser.is_valid(raise_exception=True)

        questions = authoring.move_question(question, move_ser.validated_data["direction"])
        return Response(QuestionSerializer(questions, many=True).data)


class QuestionDeleteView(APIView):
    permission_classes = [IsSurveyAdmin]

    def delete(self, request, slug, question_id):
        test = links.get_test(slug)
        question = get_object_or_404(Question, id=question_id, test_version__test=test)

        questions = authoring.remove_question(question)
        return Response(QuestionSerializer(questions, many=True).data)


class TestLinkView(APIView):
    """
    GET   /api/tests/<slug>/link/ -> link of the latest version, created on first visit
    PATCH /api/tests/<slug>/link/ {"is_active": bool}
    """

    permission_classes = [IsSurveyAdmin]

    def get(self, request, slug):
        test = links.get_test(slug)
        version = links.latest_version(test)
        link, created = links.ensure_link(version)
        return Response(
            TestLinkSerializer(link).data,
            status=status.HTTP_201_CREATED if created else status.HTTP_200_OK,
        )

    def patch(self, request, slug):
        test = links.get_test(slug)
        version = links.latest_version(test)
        link, _created = links.ensure_link(version)

        toggle_ser = TestLinkToggleSerializer(data=request.data)
        toggle_ser.is_valid(raise_exception=True)

        link = links.set_link_active(link, toggle_ser.validated_data["is_active"])
        return Response(TestLinkSerializer(link).data)


class StatsMixin:
    def load_filtered(self, request, slug):
        test = links.get_test(slug)

        flt_ser = StatsFilterSerializer(data=request.query_params)
        flt_ser.is_valid(raise_exception=True)

        snapshot = stats.load_stats(test)
        filtered = stats.filter_submissions(
            snapshot.submissions,
            stats.SubmissionFilter(**flt_ser.validated_data),
        )
        return snapshot, filtered


class TestStatsView(StatsMixin, APIView):
    """GET /api/tests/<slug>/stats/?date_from=YYYY-MM-DD&date_to=YYYY-MM-DD&participant=..."""

    permission_classes = [IsSurveyAdmin]

    def get(self, request, slug):
        snapshot, filtered = self.load_filtered(request, slug)
        charts = stats.build_charts(snapshot.questions, snapshot.answers, filtered)
        summary = stats.summarize(filtered)

        return Response(
            {
                "test": {"id": snapshot.test.id, "slug": snapshot.test.slug, "title": snapshot.test.title},
                "version": TestVersionSerializer(snapshot.version).data,
                "total_submissions": summary["total_submissions"],
                "last_submission_at": summary["last_submission_at"],
                "can_export": bool(filtered),
                "charts": QuestionChartSerializer(charts, many=True).data,
                "latest_submissions": SubmissionSerializer(stats.latest_submissions(filtered), many=True).data,
            }
        )


class TestStatsExportView(StatsMixin, APIView):
    permission_classes = [IsSurveyAdmin]

    def get(self, request, slug):
        snapshot, filtered = self.load_filtered(request, slug)
        content = stats.export_csv(filtered)

        response = HttpResponse(content, content_type="text/csv; charset=utf-8")
        filename = stats.csv_filename(snapshot.test.slug)
        response["Content-Disposition"] = f'attachment; filename="{filename}"'
        return response


class SubmissionDetailView(APIView):
    permission_classes = [IsSurveyAdmin]

    def get(self, request, slug, submission_id):
        test = links.get_test(slug)
        submission, rows = stats.submission_detail(test, submission_id)

        detail = SubmissionSerializer(submission).data
        detail["version"] = submission.test_version.version
        detail["answers"] = rows
        return Response(detail)


class PublicTestView(APIView):
    """GET /api/t/<public_id>/ -> the form a participant fills in."""

    permission_classes = [permissions.AllowAny]
    authentication_classes = []

    def get(self, request, public_id):
        link, questions = links.resolve_public_link(public_id)
        return Response(PublicTestSerializer(link, context={"questions": questions}).data)


class PublicSubmitView(APIView):
    """
    POST /api/t/<public_id>/submit/
    Body: {"participant": "...", "answers": {"<question_id>": "<option_id or text>"}}
    """

    permission_classes = [permissions.AllowAny]
    authentication_classes = []

    def post(self, request, public_id):
        link, questions = links.resolve_public_link(public_id)

        submit_ser = SubmitSerializer(data=request.data)
        submit_ser.is_valid(raise_exception=True)

        submission = submissions.record_submission(
            link.test_version,
            questions,
            submit_ser.validated_data["participant"],
            submit_ser.validated_data["answers"],
        )

        return Response(
            {"id": submission.id, "done_url": f"/t/{public_id}/done"},
            status=status.HTTP_201_CREATED,
        )
