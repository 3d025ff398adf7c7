from django.contrib.auth import get_user_model
from rest_framework import serializers

from .models import Option, Question, Submission, Test, TestLink, TestVersion
from .permissions import is_survey_admin
from .services.authoring import DOWN, UP, QuestionDraft, TestDraft
from .services.links import public_url

User = get_user_model()


class UserSerializer(serializers.ModelSerializer):
    is_admin = serializers.SerializerMethodField()

    class Meta:
        model = User
        fields = (
            "id",
            "email",
            "username",
            "first_name",
            "last_name",
            "is_admin",
        )

    def get_is_admin(self, obj) -> bool:
        return is_survey_admin(obj)


class OptionSerializer(serializers.ModelSerializer):
    class Meta:
        model = Option
        fields = ("id", "text", "ord")


class QuestionSerializer(serializers.ModelSerializer):
    options = serializers.SerializerMethodField()

    class Meta:
        model = Question
        fields = ("id", "text", "kind", "ord", "options")

    def get_options(self, obj):
        if obj.kind != Question.Kind.SINGLE:
            return []
        return OptionSerializer(obj.options.all(), many=True).data


class TestVersionSerializer(serializers.ModelSerializer):
    class Meta:
        model = TestVersion
        fields = ("id", "version", "published_at", "created_at")


class TestListSerializer(serializers.ModelSerializer):
    submissions_count = serializers.IntegerField(read_only=True)
    has_version = serializers.BooleanField(read_only=True)

    class Meta:
        model = Test
        fields = (
            "id",
            "slug",
            "title",
            "status",
            "created_at",
            "submissions_count",
            "has_version",
        )


class TestDetailSerializer(serializers.ModelSerializer):
    versions = TestVersionSerializer(many=True, read_only=True)

    class Meta:
        model = Test
        fields = (
            "id",
            "slug",
            "title",
            "description",
            "status",
            "created_at",
            "updated_at",
            "versions",
        )


class TestUpdateSerializer(serializers.Serializer):
    title = serializers.CharField(required=False, allow_blank=True, max_length=255)
    description = serializers.CharField(required=False, allow_blank=True)


# Rule checks (empty texts, option counts) live in services.authoring.validate_draft,
# which reports only the first violation; these serializers check shape.
class QuestionDraftSerializer(serializers.Serializer):
    text = serializers.CharField(allow_blank=True, trim_whitespace=False)
    kind = serializers.ChoiceField(choices=Question.Kind.choices, default=Question.Kind.SINGLE)
    options = serializers.ListField(
        child=serializers.CharField(allow_blank=True, trim_whitespace=False),
        required=False,
        allow_empty=True,
    )


class TestCreateSerializer(serializers.Serializer):
    title = serializers.CharField(allow_blank=True, trim_whitespace=False, max_length=255)
    description = serializers.CharField(required=False, allow_blank=True, default="")
    questions = QuestionDraftSerializer(many=True, allow_empty=True)

    def to_draft(self) -> TestDraft:
        data = self.validated_data
        return TestDraft(
            title=data["title"],
            description=data.get("description", ""),
            questions=[
                QuestionDraft(
                    text=question["text"],
                    kind=question["kind"],
                    options=list(question.get("options") or []) if question["kind"] == Question.Kind.SINGLE else [],
                )
                for question in data["questions"]
            ],
        )


class QuestionMoveSerializer(serializers.Serializer):
    direction = serializers.ChoiceField(choices=(UP, DOWN))


class TestLinkSerializer(serializers.ModelSerializer):
    public_url = serializers.SerializerMethodField()
    version = serializers.IntegerField(source="test_version.version", read_only=True)

    class Meta:
        model = TestLink
        fields = ("id", "public_id", "public_url", "is_active", "version", "created_at")
        read_only_fields = ("id", "public_id", "created_at")

    def get_public_url(self, obj) -> str:
        return public_url(obj)


class TestLinkToggleSerializer(serializers.Serializer):
    is_active = serializers.BooleanField()


class PublicTestSerializer(serializers.Serializer):
    """Anonymous view of a linked version: no ids beyond what the form needs."""

    title = serializers.CharField(source="test_version.test.title")
    description = serializers.CharField(source="test_version.test.description")
    test_version_id = serializers.UUIDField(source="test_version.id")
    questions = serializers.SerializerMethodField()

    def get_questions(self, obj):
        return QuestionSerializer(self.context["questions"], many=True).data


class SubmitSerializer(serializers.Serializer):
    participant = serializers.CharField(allow_blank=True, trim_whitespace=False, max_length=255)
    answers = serializers.DictField(
        child=serializers.CharField(allow_blank=True, allow_null=True, trim_whitespace=False),
        required=False,
        default=dict,
    )


class SubmissionSerializer(serializers.ModelSerializer):
    class Meta:
        model = Submission
        fields = ("id", "participant", "created_at")


class StatsFilterSerializer(serializers.Serializer):
    date_from = serializers.DateField(required=False, allow_null=True, default=None)
    date_to = serializers.DateField(required=False, allow_null=True, default=None)
    participant = serializers.CharField(required=False, allow_blank=True, default="")


class OptionCountSerializer(serializers.Serializer):
    option_id = serializers.CharField()
    text = serializers.CharField()
    count = serializers.IntegerField()


class QuestionChartSerializer(serializers.Serializer):
    question_id = serializers.CharField()
    text = serializers.CharField()
    ord = serializers.IntegerField()
    options = OptionCountSerializer(many=True)
