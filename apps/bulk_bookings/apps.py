from django.apps import AppConfig


class BulkBookingsConfig(AppConfig):
    default_auto_field = "django.db.models.BigAutoField"
    name = "apps.bulk_bookings"
    label = "bulk_bookings"
    verbose_name = "Bulk bookings"

    def ready(self):
        from shared.application.message_bus import message_bus

        from .application.command_handlers import Allocator
        from .application.event_handlers import register_event_handlers

        Allocator().register(message_bus)
        register_event_handlers(message_bus)
