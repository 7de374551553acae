from django.core.management.base import BaseCommand

from techniques.services import store
from techniques.services.tree import build_tree, walk_tree


class Command(BaseCommand):
    help = 'Print the technique hierarchy as an indented outline.'

    def add_arguments(self, parser):
        parser.add_argument('--status', default='published', help='Status to include, or "all".')

    def handle(self, *args, **options):
        records = store.light_projection(store.find_many(store.TechniqueFilter(status=options['status'])))
        tree = build_tree(records)
        if not tree:
            self.stdout.write('No techniques found.')
            return
        for depth, node in walk_tree(tree):
            self.stdout.write(f"{'  ' * depth}- {node.name['ko']} ({node.slug})")
