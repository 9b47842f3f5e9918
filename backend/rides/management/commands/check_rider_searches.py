from django.core.management.base import BaseCommand, CommandError
import logging

from rides.models import Trip
from services.matching import on_trip_created

logger = logging.getLogger(__name__)


class Command(BaseCommand):
    help = "Check active rider searches against a trip and record new matches."

    def add_arguments(self, parser):
        parser.add_argument("trip_id", type=int, help="Trip to check searches against.")
        parser.add_argument(
            "--threshold",
            type=int,
            default=None,
            help="Minimum score for a saved match (default: policy notification threshold).",
        )

    def handle(self, *args, **options):
        trip_id = options["trip_id"]

        if not Trip.objects.filter(id=trip_id).exists():
            raise CommandError(f"Trip {trip_id} does not exist.")

        created = on_trip_created(trip_id, threshold=options["threshold"])

        logger.info(f"Manual rider search check for trip {trip_id} created {len(created)} matches")
        self.stdout.write(
            self.style.SUCCESS(f"Created {len(created)} new matches for trip {trip_id}.")
        )
