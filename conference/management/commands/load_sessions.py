"""
Management command to load conference sessions from a JSON file.

The file holds a JSON array of session objects keyed by model field names,
e.g. {"title": ..., "category": "DigitalMarketing", "date": "2025-03-10",
"time": "10:00 AM", "duration": "1.5 hours", "tags": [...]}.
"""

import json

from django.core.management.base import BaseCommand, CommandError
from conference import services


class Command(BaseCommand):
    help = 'Load conference sessions from a JSON file'

    def add_arguments(self, parser):
        parser.add_argument(
            'path',
            help='Path to a JSON file containing an array of sessions'
        )

    def handle(self, *args, **options):
        path = options['path']

        try:
            with open(path, encoding='utf-8') as fh:
                records = json.load(fh)
        except (OSError, ValueError) as e:
            raise CommandError(f'Could not read sessions from {path}: {e}')

        if not isinstance(records, list):
            raise CommandError('Session file must contain a JSON array')

        self.stdout.write(f'Loading {len(records)} session(s) from {path}...')

        try:
            total_created = services.import_sessions(records)
        except ValueError as e:
            raise CommandError(str(e))

        self.stdout.write(
            self.style.SUCCESS(
                f'Successfully loaded {total_created} session(s)'
            )
        )
