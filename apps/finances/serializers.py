"""Serializers for the finance domain."""

from __future__ import annotations

from rest_framework import serializers  # type: ignore

from .models import Transaction


class TransactionSerializer(serializers.ModelSerializer):
    chunk_name = serializers.ReadOnlyField(source="chunk.chunk_name")
    parking_name = serializers.ReadOnlyField(source="chunk.parking_name")
    company = serializers.ReadOnlyField(source="chunk.company")
    booked_by = serializers.ReadOnlyField(source="user.email")

    class Meta:
        model = Transaction
        fields = [
            "id",
            "type",
            "amount",
            "method",
            "status",
            "date",
            "chunk",
            "chunk_name",
            "parking_name",
            "company",
            "booked_by",
        ]
        read_only_fields = fields
