from django.contrib import admin

from .models import GitObject, Reference, Repository


@admin.register(Reference)
class ReferenceAdmin(admin.ModelAdmin):
    list_display = ("repo", "name", "commit_hash", "updated_at")
    list_filter = ("repo",)


@admin.register(GitObject)
class GitObjectAdmin(admin.ModelAdmin):
    list_display = ("repo", "sha1", "type")
    list_filter = ("repo", "type")
    search_fields = ("sha1",)


admin.site.register(Repository)
