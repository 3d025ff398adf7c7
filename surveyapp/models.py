# models.py
from __future__ import annotations

import secrets
from typing import Any
from uuid import uuid4

from django.conf import settings
from django.contrib.auth.models import AbstractUser, UserManager
from django.contrib.auth.validators import UnicodeUsernameValidator
from django.db import models
from django.db.models import Q
from django.utils.translation import gettext_lazy as _


def generate_public_id() -> str:
    # The public id is the only thing protecting a submission form.
    nbytes = getattr(settings, "SURVEY_PUBLIC_ID_BYTES", 16)
    return secrets.token_urlsafe(nbytes)


class CustomUserManager(UserManager):
    use_in_migrations = True

    def _create_user(self, email: str, password: str | None, **extra_fields: Any):
        if not email:
            raise ValueError("The email field must be set.")

        user = self.model(email=email, **extra_fields)
        user.set_password(password)
        user.save(using=self._db)
        return user

    def create_user(self, email: str, password: str | None = None, **extra_fields: Any):
        extra_fields.setdefault("is_staff", False)
        extra_fields.setdefault("is_superuser", False)
        return self._create_user(email=email, password=password, **extra_fields)

    def create_superuser(self, email: str, password: str, **extra_fields: Any):
        extra_fields["is_staff"] = True
        extra_fields["is_superuser"] = True

        user = self._create_user(email=email, password=password, **extra_fields)
        Profile.objects.update_or_create(user=user, defaults={"is_admin": True})
        return user


class User(AbstractUser):
    """Administrator account; signs in with e-mail. Admin rights come from Profile."""

    username = models.CharField(
        _("username"),
        max_length=150,
        unique=True,
        null=True,
        blank=True,
        validators=[UnicodeUsernameValidator()],
    )
    email = models.EmailField(_("email address"), unique=True)

    objects = CustomUserManager()

    USERNAME_FIELD = "email"
    REQUIRED_FIELDS: list[str] = []

    def save(self, *args: Any, **kwargs: Any):
        # Whole address lowercased; blank username stored as NULL to keep it unique.
        self.email = (self.email or "").strip().lower()
        if self.username is not None:
            self.username = self.username.strip() or None
        super().save(*args, **kwargs)

    def __str__(self) -> str:
        return self.email


class Profile(models.Model):
    user = models.OneToOneField(
        settings.AUTH_USER_MODEL,
        on_delete=models.CASCADE,
        related_name="profile",
        verbose_name=_("user"),
    )
    is_admin = models.BooleanField(_("is admin"), default=False)

    def __str__(self) -> str:
        return f"{self.user} (admin={self.is_admin})"


class Test(models.Model):
    class Status(models.TextChoices):
        DRAFT = "draft", _("Draft")
        PUBLISHED = "published", _("Published")

    id = models.UUIDField(primary_key=True, default=uuid4, editable=False)

    title = models.CharField(_("title"), max_length=255)
    slug = models.SlugField(_("slug"), max_length=300, unique=True)
    description = models.TextField(_("description"), blank=True)

    status = models.CharField(
        _("status"),
        max_length=16,
        choices=Status.choices,
        default=Status.DRAFT,
    )

    created_by = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name="tests",
        verbose_name=_("created by"),
    )

    created_at = models.DateTimeField(_("created at"), auto_now_add=True)
    updated_at = models.DateTimeField(_("updated at"), auto_now=True)

    class Meta:
        ordering = ["-created_at"]

    def clean(self):
        super().clean()
        self.title = (self.title or "").strip()
        self.description = (self.description or "").strip()

    def __str__(self) -> str:
        return self.title


class TestVersion(models.Model):
    id = models.UUIDField(primary_key=True, default=uuid4, editable=False)

    test = models.ForeignKey(
        Test,
        on_delete=models.PROTECT,
        related_name="versions",
        verbose_name=_("test"),
    )

    version = models.PositiveIntegerField(_("version"))
    # NULL means the version is still a draft.
    published_at = models.DateTimeField(_("published at"), null=True, blank=True)
    created_at = models.DateTimeField(_("created at"), auto_now_add=True)

    class Meta:
        ordering = ["version"]
        constraints = [
            models.UniqueConstraint(fields=["test", "version"], name="uniq_test_version")
        ]

    @property
    def is_draft(self) -> bool:
        return self.published_at is None

    def __str__(self) -> str:
        return f"{self.test_id} v{self.version}"


class Question(models.Model):
    class Kind(models.TextChoices):
        SINGLE = "SINGLE", _("Single choice")
        TEXT = "TEXT", _("Free text")

    id = models.UUIDField(primary_key=True, default=uuid4, editable=False)

    test_version = models.ForeignKey(
        TestVersion,
        on_delete=models.PROTECT,
        related_name="questions",
        verbose_name=_("test version"),
    )

    text = models.TextField(_("text"))
    kind = models.CharField(_("kind"), max_length=8, choices=Kind.choices)
    ord = models.PositiveIntegerField(_("order"))

    class Meta:
        ordering = ["ord"]
        constraints = [
            models.UniqueConstraint(fields=["test_version", "ord"], name="uniq_version_question_ord")
        ]

    def __str__(self) -> str:
        return f"{self.test_version_id} #{self.ord}"


class Option(models.Model):
    id = models.UUIDField(primary_key=True, default=uuid4, editable=False)

    question = models.ForeignKey(
        Question,
        on_delete=models.PROTECT,
        related_name="options",
        verbose_name=_("question"),
    )

    text = models.TextField(_("text"))
    ord = models.PositiveIntegerField(_("order"))

    class Meta:
        ordering = ["ord"]
        constraints = [
            models.UniqueConstraint(fields=["question", "ord"], name="uniq_question_option_ord")
        ]

    def __str__(self) -> str:
        return self.text


class TestLink(models.Model):
    id = models.UUIDField(primary_key=True, default=uuid4, editable=False)

    # One-to-one: a second link for the same version fails on insert.
    test_version = models.OneToOneField(
        TestVersion,
        on_delete=models.PROTECT,
        related_name="link",
        verbose_name=_("test version"),
    )

    public_id = models.CharField(
        _("public id"),
        max_length=64,
        unique=True,
        default=generate_public_id,
        editable=False,
    )
    is_active = models.BooleanField(_("is active"), default=True)
    created_at = models.DateTimeField(_("created at"), auto_now_add=True)

    def __str__(self) -> str:
        return self.public_id


class Submission(models.Model):
    id = models.UUIDField(primary_key=True, default=uuid4, editable=False)

    test_version = models.ForeignKey(
        TestVersion,
        on_delete=models.PROTECT,
        related_name="submissions",
        verbose_name=_("test version"),
    )

    participant = models.CharField(_("participant"), max_length=255)
    created_at = models.DateTimeField(_("created at"), auto_now_add=True, db_index=True)

    class Meta:
        ordering = ["-created_at"]

    def __str__(self) -> str:
        return f"{self.participant} ({self.id})"


class Answer(models.Model):
    submission = models.ForeignKey(
        Submission,
        on_delete=models.PROTECT,
        related_name="answers",
        verbose_name=_("submission"),
    )
    question = models.ForeignKey(
        Question,
        on_delete=models.PROTECT,
        related_name="answers",
        verbose_name=_("question"),
    )
    option = models.ForeignKey(
        Option,
        on_delete=models.PROTECT,
        null=True,
        blank=True,
        related_name="answers",
        verbose_name=_("option"),
    )
    free_text = models.TextField(_("free text"), null=True, blank=True)

    class Meta:
        constraints = [
            models.UniqueConstraint(fields=["submission", "question"], name="uniq_submission_question"),
            models.CheckConstraint(
                condition=(
                    Q(option__isnull=False, free_text__isnull=True)
                    | Q(option__isnull=True, free_text__isnull=False)
                ),
                name="answer_option_xor_free_text",
            ),
        ]

    def __str__(self) -> str:
        return f"{self.submission_id} / {self.question_id}"
