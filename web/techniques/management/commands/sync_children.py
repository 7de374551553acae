from django.core.management.base import BaseCommand, CommandError

from techniques.errors import TechniqueError
from techniques.services.hierarchy import rebuild_paths, sync_children


class Command(BaseCommand):
    help = 'Rebuild every technique children list from its parent links.'

    def add_arguments(self, parser):
        parser.add_argument(
            '--paths',
            action='store_true',
            help='Also recompute level and path slugs for every reachable technique.',
        )

    def handle(self, *args, **options):
        try:
            if options['paths']:
                refreshed = rebuild_paths()
                self.stdout.write(f'Recomputed paths for {refreshed} techniques.')
            result = sync_children()
        except TechniqueError as exc:
            raise CommandError(exc.message) from exc
        self.stdout.write(
            self.style.SUCCESS(f'Synced children for {result.parents} parents ({result.linked} links).')
        )
