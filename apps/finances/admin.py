"""Admin registration for the transaction log."""

from __future__ import annotations

from django.contrib import admin

from .models import Transaction


@admin.register(Transaction)
class TransactionAdmin(admin.ModelAdmin):
    list_display = ("id", "type", "status", "amount", "method", "chunk", "user", "date")
    list_filter = ("type", "status", "method", "date")
    search_fields = ("chunk__chunk_name", "chunk__parking_name", "user__email")
    readonly_fields = ("created_at",)
