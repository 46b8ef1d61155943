import django.db.models.deletion
import django.utils.timezone
from decimal import Decimal
from django.conf import settings
from django.db import migrations, models


class Migration(migrations.Migration):

    initial = True

    dependencies = [
        migrations.swappable_dependency(settings.AUTH_USER_MODEL),
    ]

    operations = [
        migrations.CreateModel(
            name="BulkBookingChunk",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("purchase_date", models.DateTimeField(default=django.utils.timezone.now)),
                ("parking_name", models.CharField(max_length=255)),
                ("chunk_name", models.CharField(max_length=255)),
                ("company", models.CharField(max_length=255)),
                (
                    "vehicle_type",
                    models.CharField(
                        choices=[("car", "Car"), ("bicycle", "Bicycle"), ("truck", "Truck")],
                        default="car",
                        max_length=20,
                    ),
                ),
                ("total_spots", models.PositiveIntegerField()),
                ("used_spots", models.PositiveIntegerField(default=0)),
                ("available_spots", models.PositiveIntegerField()),
                ("valid_from", models.DateField()),
                ("valid_to", models.DateField()),
                (
                    "status",
                    models.CharField(
                        choices=[("active", "Active"), ("full", "Full"), ("expired", "Expired")],
                        default="active",
                        max_length=20,
                    ),
                ),
                ("remarks", models.TextField(blank=True)),
                ("access_code", models.CharField(blank=True, editable=False, max_length=64)),
                ("created_at", models.DateTimeField(auto_now_add=True)),
                ("updated_at", models.DateTimeField(auto_now=True)),
                (
                    "owner",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.CASCADE,
                        related_name="bulk_booking_chunks",
                        to=settings.AUTH_USER_MODEL,
                    ),
                ),
            ],
            options={
                "verbose_name": "Bulk booking chunk",
                "verbose_name_plural": "Bulk booking chunks",
                "ordering": ["-purchase_date"],
                "indexes": [
                    models.Index(fields=["owner", "status"], name="chunk_owner_status_idx"),
                    models.Index(fields=["access_code"], name="chunk_access_code_idx"),
                    models.Index(fields=["valid_to"], name="chunk_valid_to_idx"),
                ],
                "constraints": [
                    models.CheckConstraint(
                        condition=models.Q(total_spots__gte=1),
                        name="chunk_total_spots_positive",
                    ),
                    models.CheckConstraint(
                        condition=models.Q(used_spots__lte=models.F("total_spots")),
                        name="chunk_used_within_total",
                    ),
                    models.CheckConstraint(
                        condition=models.Q(available_spots=models.F("total_spots") - models.F("used_spots")),
                        name="chunk_available_matches_used",
                    ),
                    models.CheckConstraint(
                        condition=models.Q(valid_to__gte=models.F("valid_from")),
                        name="chunk_valid_dates",
                    ),
                ],
            },
        ),
        migrations.CreateModel(
            name="SubBooking",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("customer_name", models.CharField(blank=True, max_length=255)),
                ("customer_email", models.EmailField(blank=True, max_length=254)),
                ("parking_location", models.CharField(blank=True, max_length=255)),
                ("assigned_spots", models.PositiveIntegerField()),
                ("valid_from", models.DateField()),
                ("valid_to", models.DateField()),
                (
                    "status",
                    models.CharField(
                        choices=[("active", "Active"), ("suspended", "Suspended"), ("expired", "Expired")],
                        default="active",
                        max_length=20,
                    ),
                ),
                (
                    "usage_time",
                    models.DecimalField(
                        decimal_places=2,
                        default=Decimal("0.00"),
                        help_text="Accumulated hours of use.",
                        max_digits=10,
                    ),
                ),
                ("last_access_date", models.DateTimeField(blank=True, null=True)),
                ("notes", models.TextField(blank=True)),
                ("access_code", models.CharField(blank=True, editable=False, max_length=64)),
                ("idempotency_key", models.CharField(blank=True, max_length=64, null=True)),
                ("created_at", models.DateTimeField(auto_now_add=True)),
                ("updated_at", models.DateTimeField(auto_now=True)),
                (
                    "bulk_booking",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.PROTECT,
                        related_name="sub_bookings",
                        to="bulk_bookings.bulkbookingchunk",
                    ),
                ),
                (
                    "customer",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.CASCADE,
                        related_name="sub_bookings",
                        to=settings.AUTH_USER_MODEL,
                    ),
                ),
                (
                    "owner",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.CASCADE,
                        related_name="owned_sub_bookings",
                        to=settings.AUTH_USER_MODEL,
                    ),
                ),
            ],
            options={
                "verbose_name": "Sub-booking",
                "verbose_name_plural": "Sub-bookings",
                "ordering": ["-created_at"],
                "indexes": [
                    models.Index(fields=["bulk_booking", "status"], name="sub_booking_chunk_status_idx"),
                    models.Index(fields=["owner", "status"], name="sub_booking_owner_status_idx"),
                    models.Index(fields=["valid_to"], name="sub_booking_valid_to_idx"),
                ],
                "constraints": [
                    models.CheckConstraint(
                        condition=models.Q(assigned_spots__gte=1),
                        name="sub_booking_spots_positive",
                    ),
                    models.CheckConstraint(
                        condition=models.Q(valid_to__gte=models.F("valid_from")),
                        name="sub_booking_valid_dates",
                    ),
                    models.UniqueConstraint(
                        condition=models.Q(idempotency_key__isnull=False),
                        fields=("owner", "idempotency_key"),
                        name="sub_booking_unique_idempotency_key",
                    ),
                ],
            },
        ),
    ]
