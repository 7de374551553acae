from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, Iterable, Iterator, List

from django.conf import settings
from django.core.cache import cache

from techniques.errors import NotFoundError, ValidationError
from techniques.models import Technique

from . import store

logger = logging.getLogger(__name__)

TREE_CACHE_KEY = 'technique-tree'


@dataclass
class TechniqueNode:
    id: str
    slug: str
    name: dict
    parent_id: str | None
    path_slugs: list[str]
    order: int
    primary_role: str
    type: str
    children: List['TechniqueNode'] = field(default_factory=list)

    @property
    def sort_key(self) -> tuple[int, str]:
        return self.order, (self.name.get('ko') or '').lower()

    def to_dict(self) -> dict:
        return {
            'id': self.id,
            'slug': self.slug,
            'name': self.name,
            'parent_id': self.parent_id,
            'path_slugs': self.path_slugs,
            'order': self.order,
            'primary_role': self.primary_role,
            'type': self.type,
            'children': [child.to_dict() for child in self.children],
        }


def _as_node(record: Any) -> TechniqueNode:
    if isinstance(record, Technique):
        return TechniqueNode(
            id=str(record.id),
            slug=record.slug,
            name={'ko': record.name_ko, 'en': record.name_en},
            parent_id=str(record.parent_id) if record.parent_id else None,
            path_slugs=list(record.path_slugs or []),
            order=record.order,
            primary_role=record.primary_role,
            type=record.type,
        )
    return TechniqueNode(
        id=str(record['id']),
        slug=record['slug'],
        name=dict(record['name']),
        parent_id=str(record['parent_id']) if record.get('parent_id') else None,
        path_slugs=list(record.get('path_slugs') or []),
        order=record.get('order', 0),
        primary_role=record.get('primary_role', ''),
        type=record.get('type', ''),
    )


def build_tree(records: Iterable[Any]) -> List[TechniqueNode]:
    """Assemble a forest from flat parent-linked records.

    Records whose parent is absent from ``records`` (filtered out or
    deleted) are promoted to roots. Siblings are ordered by ``order``
    then by name.
    """
    nodes = [_as_node(record) for record in records]
    index = {node.id: node for node in nodes}
    roots: list[TechniqueNode] = []
    for node in nodes:
        parent = index.get(node.parent_id) if node.parent_id else None
        if parent is not None and parent is not node:
            parent.children.append(node)
        else:
            roots.append(node)

    def sort_level(level: list[TechniqueNode]) -> list[TechniqueNode]:
        level.sort(key=lambda item: item.sort_key)
        for item in level:
            sort_level(item.children)
        return level

    return sort_level(roots)


def walk_tree(nodes: Iterable[TechniqueNode], depth: int = 0) -> Iterator[tuple[int, TechniqueNode]]:
    for node in nodes:
        yield depth, node
        yield from walk_tree(node.children, depth + 1)


def get_technique_tree() -> List[TechniqueNode]:
    tree = cache.get(TREE_CACHE_KEY)
    if tree is not None:
        return tree
    records = store.light_projection(store.find_many(store.TechniqueFilter()))
    tree = build_tree(records)
    cache.set(TREE_CACHE_KEY, tree, settings.TECHNIQUE_HIERARCHY['TREE_CACHE_TTL'])
    logger.info('Rebuilt technique tree: %s records, %s roots', len(records), len(tree))
    return tree


def invalidate_technique_tree() -> None:
    cache.delete(TREE_CACHE_KEY)


def resolve_breadcrumbs(path_slugs: Iterable[str]) -> list[dict]:
    crumbs: list[dict] = []
    for slug in path_slugs:
        try:
            ancestor = store.find_by_slug(slug)
        except NotFoundError:
            logger.warning('Breadcrumb ancestor %s is missing', slug)
            crumbs.append({'name': slug, 'slug': slug})
            continue
        crumbs.append({'name': ancestor.display_name, 'slug': ancestor.slug})
    return crumbs


def resolve_canonical_path(record: Any) -> str:
    return '/'.join([*(record.path_slugs or []), record.slug])


def find_by_canonical_path(path: str) -> Technique:
    """Resolve ``guard/open-guard/x-guard`` to its technique.

    The last segment identifies the record; ancestor segments may be stale
    after a reparent, so callers compare against ``canonical_path`` to
    decide whether to redirect.
    """
    segments = [segment for segment in (path or '').strip('/').split('/') if segment]
    if not segments:
        raise ValidationError('path cannot be empty')
    return store.find_by_slug(segments[-1])
