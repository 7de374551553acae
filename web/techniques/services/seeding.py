from __future__ import annotations

from dataclasses import dataclass
from typing import Any

from techniques.errors import NotFoundError
from techniques.models import Technique

from . import hierarchy, store


class TechniqueSeedError(ValueError):
    """Raised when a category payload cannot be seeded."""


@dataclass
class TechniqueSeedResult:
    created: int
    updated: int
    linked: int


_SEED_FIELDS = (
    'name', 'description', 'aka', 'type', 'primary_role', 'role_tags', 'difficulty',
    'is_core_position', 'position_type', 'order',
)


def _extract_children(data: dict) -> list[dict]:
    children = data.get('children', [])
    if children is None:
        return []
    if not isinstance(children, list):
        raise TechniqueSeedError('children must be a list')
    return [child for child in children if isinstance(child, dict)]


def _node_fields(data: dict, *, depth: int, order: int) -> dict:
    if not data.get('name'):
        raise TechniqueSeedError('each seeded technique requires a name')
    name = data['name']
    primary_name = name if isinstance(name, str) else (name or {}).get('ko', '')
    fields = {key: data[key] for key in _SEED_FIELDS if key in data}
    fields.setdefault('description', {'ko': primary_name})
    fields.setdefault('primary_role', 'position' if depth == 1 else 'drill')
    fields.setdefault('is_core_position', depth == 1)
    fields.setdefault('order', order)
    fields['status'] = data.get('status', Technique.STATUS_PUBLISHED)
    return fields


def _seed_node(data: dict, *, parent: Technique | None, depth: int, order: int, summary: dict) -> None:
    fields = _node_fields(data, depth=depth, order=order)
    fields['parent_id'] = str(parent.pk) if parent is not None else None
    slug = data.get('slug')
    existing = None
    if slug:
        try:
            existing = store.find_by_slug(slug)
        except NotFoundError:
            existing = None
    if existing is None:
        if slug:
            fields['slug'] = slug
        technique = hierarchy.create_technique(fields)
        summary['created'] += 1
    else:
        technique = hierarchy.update_technique(existing.pk, fields)
        summary['updated'] += 1
    for child_order, child in enumerate(_extract_children(data)):
        _seed_node(child, parent=technique, depth=depth + 1, order=child_order, summary=summary)


def seed_techniques(payload: Any) -> TechniqueSeedResult:
    """Upsert a nested category tree by slug, then rebuild paths and children lists."""
    if isinstance(payload, dict):
        payload = payload.get('techniques')
    if not isinstance(payload, list) or not payload:
        raise TechniqueSeedError('seed payload must be a non-empty list of techniques')
    summary = {'created': 0, 'updated': 0}
    for order, node in enumerate(payload):
        if not isinstance(node, dict):
            raise TechniqueSeedError('techniques must be objects')
        _seed_node(node, parent=None, depth=1, order=order, summary=summary)
    hierarchy.rebuild_paths()
    synced = hierarchy.sync_children()
    return TechniqueSeedResult(created=summary['created'], updated=summary['updated'], linked=synced.linked)

