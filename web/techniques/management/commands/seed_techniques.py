from pathlib import Path

import yaml
from django.core.management.base import BaseCommand, CommandError

from techniques.errors import TechniqueError
from techniques.services.seeding import TechniqueSeedError, seed_techniques

DEFAULT_FIXTURE = Path(__file__).resolve().parents[2] / 'fixtures' / 'categories.yaml'


class Command(BaseCommand):
    help = 'Upsert the technique category tree from a YAML file and publish it.'

    def add_arguments(self, parser):
        parser.add_argument('path', nargs='?', default=str(DEFAULT_FIXTURE))

    def handle(self, *args, **options):
        path = Path(options['path'])
        if not path.exists():
            raise CommandError(f'{path} does not exist')
        with path.open(encoding='utf-8') as handle:
            try:
                payload = yaml.safe_load(handle)
            except yaml.YAMLError as exc:
                raise CommandError(f'Invalid YAML: {exc}') from exc
        try:
            result = seed_techniques(payload)
        except TechniqueSeedError as exc:
            raise CommandError(str(exc)) from exc
        except TechniqueError as exc:
            raise CommandError(exc.message) from exc
        self.stdout.write(
            self.style.SUCCESS(
                f'Seeded techniques: {result.created} created, {result.updated} updated, {result.linked} links.'
            )
        )
