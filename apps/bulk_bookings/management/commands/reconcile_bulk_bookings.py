"""Recompute chunk counters from their active assignments."""

from django.core.management.base import BaseCommand, CommandError

from apps.bulk_bookings.exceptions import AllocationError
from apps.bulk_bookings.models import BulkBookingChunk
from apps.bulk_bookings.services import ChunkInventory


class Command(BaseCommand):
    help = "Recompute used/available spots and status of bulk booking chunks from their assignments"

    def add_arguments(self, parser):
        parser.add_argument("--chunk", type=int, help="Only reconcile this chunk id")

    def handle(self, *args, **options):
        inventory = ChunkInventory()

        if options.get("chunk"):
            chunk_ids = [options["chunk"]]
        else:
            chunk_ids = list(BulkBookingChunk.objects.values_list("pk", flat=True))

        failures = 0
        for chunk_id in chunk_ids:
            before = BulkBookingChunk.objects.filter(pk=chunk_id).values_list("used_spots", flat=True).first()
            try:
                chunk = inventory.recompute_usage(chunk_id)
            except AllocationError as exc:
                failures += 1
                self.stderr.write(self.style.ERROR(f"Chunk {chunk_id}: {exc}"))
                continue

            if before != chunk.used_spots:
                self.stdout.write(
                    self.style.WARNING(
                        f"Chunk {chunk_id}: used spots {before} -> {chunk.used_spots}"
                    )
                )

        if failures and options.get("chunk"):
            raise CommandError(f"Chunk {options['chunk']} could not be reconciled")

        self.stdout.write(self.style.SUCCESS(f"Reconciled {len(chunk_ids) - failures} chunks"))
