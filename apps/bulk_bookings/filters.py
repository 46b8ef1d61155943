"""FilterSet definitions for assignment listing."""

from __future__ import annotations

import django_filters  # type: ignore

from .models import SubBooking


class SubBookingFilterSet(django_filters.FilterSet):
    """``?customer=``, ``?chunk=`` and ``?status=`` on the assignment list."""

    customer = django_filters.NumberFilter(field_name="customer_id", lookup_expr="exact")
    chunk = django_filters.NumberFilter(field_name="bulk_booking_id", lookup_expr="exact")
    status = django_filters.ChoiceFilter(field_name="status", choices=SubBooking.Status.choices)
    active_on = django_filters.DateFilter(method="filter_active_on")

    class Meta:
        model = SubBooking
        fields = ["customer", "chunk", "status"]

    def filter_active_on(self, queryset, name, value):  # type: ignore
        return queryset.filter(valid_from__lte=value, valid_to__gte=value)
