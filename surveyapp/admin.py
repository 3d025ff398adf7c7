from django.contrib import admin
from django.contrib.auth import forms as auth_forms
from django.contrib.auth.admin import UserAdmin as DjangoUserAdmin

from .models import Option, Profile, Question, Submission, Test, TestLink, TestVersion, User


class UserCreationForm(auth_forms.UserCreationForm):
    class Meta(auth_forms.UserCreationForm.Meta):
        model = User
        fields = ("email",)


class UserChangeForm(auth_forms.UserChangeForm):
    class Meta(auth_forms.UserChangeForm.Meta):
        model = User


class ProfileInline(admin.StackedInline):
    model = Profile
    can_delete = False
    extra = 0


@admin.register(User)
class UserAdmin(DjangoUserAdmin):
    add_form = UserCreationForm
    form = UserChangeForm
    inlines = [ProfileInline]

    ordering = ("email",)
    list_display = ("email", "is_active", "last_login")
    list_filter = ("is_active", "profile__is_admin")
    search_fields = ("email", "username")

    fieldsets = (
        (None, {"fields": ("email", "password", "username")}),
        ("Access", {"fields": ("is_active", "is_staff", "is_superuser")}),
        ("Dates", {"fields": ("last_login", "date_joined")}),
    )
    add_fieldsets = (
        (None, {"classes": ("wide",), "fields": ("email", "password1", "password2")}),
    )


class TestVersionInline(admin.TabularInline):
    model = TestVersion
    extra = 0
    ordering = ("version",)
    fields = ("version", "published_at", "created_at")
    readonly_fields = ("version", "published_at", "created_at")
    can_delete = False


class OptionInline(admin.TabularInline):
    model = Option
    extra = 0
    ordering = ("ord",)


@admin.register(Test)
class TestAdmin(admin.ModelAdmin):
    list_display = ("title", "slug", "status", "created_by", "created_at")
    list_filter = ("status",)
    search_fields = ("title", "slug")
    readonly_fields = ("slug", "created_at", "updated_at")
    inlines = [TestVersionInline]

    # Removal goes through services.deletion, which deletes children in order.
    def has_delete_permission(self, request, obj=None):
        return False


@admin.register(Question)
class QuestionAdmin(admin.ModelAdmin):
    list_display = ("text", "kind", "ord", "test_version")
    list_filter = ("kind",)
    search_fields = ("text",)
    inlines = [OptionInline]


@admin.register(TestLink)
class TestLinkAdmin(admin.ModelAdmin):
    list_display = ("public_id", "test_version", "is_active", "created_at")
    list_filter = ("is_active",)
    search_fields = ("public_id",)


@admin.register(Submission)
class SubmissionAdmin(admin.ModelAdmin):
    list_display = ("id", "participant", "test_version", "created_at")
    search_fields = ("id", "participant")
    date_hierarchy = "created_at"

    def has_change_permission(self, request, obj=None):
        return False
