"""Hierarchy bookkeeping around the technique store.

``parent`` is the source of truth; ``children_ids``, ``level``,
``path_slugs`` and ``canonical_path`` are denormalized copies kept in sync
here. Every mutation is a short run of independent ORM calls with no
surrounding transaction, so a failure part-way leaves the copies drifting
until :func:`sync_children` (or :func:`rebuild_paths`) runs.
"""
from __future__ import annotations

import logging
import uuid
from collections import defaultdict
from dataclasses import dataclass, field
from typing import Any

from django.conf import settings
from django.db.models import F

from techniques.errors import StoreError, ValidationError
from techniques.models import Technique

from . import store
from .store import store_call
from .tree import invalidate_technique_tree

logger = logging.getLogger(__name__)

ROOT_VALUES = (None, '', store.ROOT_SENTINEL)


@dataclass
class DeleteResult:
    technique_id: str
    orphaned_ids: list[str] = field(default_factory=list)


@dataclass
class ReorderResult:
    updated: int
    missing_ids: list[str] = field(default_factory=list)


@dataclass
class SyncResult:
    linked: int
    parents: int


def _cascade_enabled() -> bool:
    return bool(settings.TECHNIQUE_HIERARCHY.get('CASCADE_DESCENDANTS', False))


def _placement(parent: Technique | None) -> tuple[int, list[str]]:
    if parent is None:
        return 1, []
    return (parent.level or 1) + 1, [*(parent.path_slugs or []), parent.slug]


def _normalise_parent_id(value: Any) -> str | None:
    if value in ROOT_VALUES:
        return None
    return str(store.parse_technique_id(value, field='parent_id'))


def _add_child(parent_id: uuid.UUID, child_id: uuid.UUID) -> bool:
    child_key = str(child_id)
    with store_call('link child'):
        parent = Technique.objects.filter(pk=parent_id).first()
        if parent is None:
            return False
        if child_key in parent.children_ids:
            return True
        parent.children_ids = [*parent.children_ids, child_key]
        parent.save(update_fields=['children_ids'])
    return True


def _remove_child(parent_id: uuid.UUID, child_id: uuid.UUID) -> None:
    child_key = str(child_id)
    with store_call('unlink child'):
        parent = Technique.objects.filter(pk=parent_id).first()
        if parent is None or child_key not in parent.children_ids:
            return
        parent.children_ids = [item for item in parent.children_ids if item != child_key]
        parent.save(update_fields=['children_ids'])


def _assert_not_descendant(technique: Technique, candidate: Technique) -> None:
    seen: set[uuid.UUID] = set()
    current_id = candidate.pk
    while current_id is not None:
        if current_id == technique.pk:
            raise ValidationError('a technique cannot be moved under itself or one of its descendants')
        if current_id in seen:
            break
        seen.add(current_id)
        with store_call('walk ancestors'):
            current_id = (
                Technique.objects.filter(pk=current_id).values_list('parent_id', flat=True).first()
            )


def _cascade_descendants(root: Technique) -> int:
    updated = 0
    visited = {root.pk}
    queue = [root]
    while queue:
        node = queue.pop(0)
        level, path_slugs = _placement(node)
        with store_call('load descendants'):
            children = list(Technique.objects.filter(parent_id=node.pk))
        for child in children:
            if child.pk in visited:
                continue
            visited.add(child.pk)
            if child.level != level or list(child.path_slugs or []) != path_slugs:
                child.level = level
                child.path_slugs = path_slugs
                with store_call('update descendant'):
                    child.save(update_fields=['level', 'path_slugs'])
                updated += 1
            queue.append(child)
    return updated


def create_technique(draft: dict) -> Technique:
    parent_id = _normalise_parent_id(draft.get('parent_id'))
    parent = store.find_by_id(parent_id) if parent_id else None
    level, path_slugs = _placement(parent)
    technique = store.create(draft, parent=parent, level=level, path_slugs=path_slugs)
    try:
        if parent is not None:
            _add_child(parent.pk, technique.pk)
    except StoreError:
        logger.error(
            'Technique %s created but not linked to parent %s; run sync_children to repair',
            technique.pk,
            parent.pk,
        )
        raise
    finally:
        invalidate_technique_tree()
    logger.info('Created technique %s at level %s', technique.canonical_path, technique.level)
    return technique


def _apply_reparent(technique: Technique, new_parent: Technique | None) -> Technique:
    old_parent_id = technique.parent_id
    if old_parent_id is not None:
        _remove_child(old_parent_id, technique.pk)
    if new_parent is not None:
        _add_child(new_parent.pk, technique.pk)
    technique.parent = new_parent
    technique.level, technique.path_slugs = _placement(new_parent)
    with store_call('reparent technique'):
        technique.save(update_fields=['parent', 'level', 'path_slugs'])
    logger.info(
        'Moved technique %s from parent %s to %s',
        technique.slug,
        old_parent_id,
        new_parent.pk if new_parent is not None else None,
    )
    if _cascade_enabled():
        refreshed = _cascade_descendants(technique)
        logger.info('Recomputed %s descendants of %s', refreshed, technique.slug)
    return technique


def update_technique(technique_id: Any, patch: dict) -> Technique:
    if not isinstance(patch, dict):
        raise ValidationError('payload must be an object')
    current = store.find_by_id(technique_id)
    current_parent = str(current.parent_id) if current.parent_id else None
    reparent = False
    new_parent = None
    if 'parent_id' in patch:
        requested = _normalise_parent_id(patch['parent_id'])
        reparent = requested != current_parent
        if reparent and requested is not None:
            new_parent = store.find_by_id(requested)
            _assert_not_descendant(current, new_parent)
    try:
        technique = store.update(current.pk, patch)
        if reparent:
            technique = _apply_reparent(technique, new_parent)
    finally:
        invalidate_technique_tree()
    return technique


def delete_technique(technique_id: Any) -> DeleteResult:
    technique = store.find_by_id(technique_id)
    result = DeleteResult(technique_id=str(technique.pk))
    try:
        if technique.parent_id is not None:
            _remove_child(technique.parent_id, technique.pk)
        with store_call('orphan children'):
            children = list(Technique.objects.filter(parent_id=technique.pk))
            Technique.objects.filter(pk__in=[child.pk for child in children]).update(
                parent=None,
                level=1,
                path_slugs=[],
                canonical_path=F('slug'),
            )
        result.orphaned_ids = [str(child.pk) for child in children]
        if children:
            logger.info('Orphaned %s children of %s', len(children), technique.slug)
        if _cascade_enabled():
            for child in children:
                child.level, child.path_slugs = 1, []
                _cascade_descendants(child)
        store.delete(technique.pk)
    finally:
        invalidate_technique_tree()
    logger.info('Deleted technique %s', technique.slug)
    return result


def reorder_techniques(items: Any) -> ReorderResult:
    if not isinstance(items, list):
        raise ValidationError('items must be a list of {"id", "order"} objects')
    orders: dict[uuid.UUID, int] = {}
    for item in items:
        if not isinstance(item, dict):
            raise ValidationError('items must be a list of {"id", "order"} objects')
        raw_id = item.get('id', item.get('_id'))
        if 'order' not in item:
            raise ValidationError('each reorder item requires an "order"')
        orders[store.parse_technique_id(raw_id)] = store.parse_integer(item['order'], 'order')
    if not orders:
        return ReorderResult(updated=0)
    try:
        with store_call('reorder techniques'):
            techniques = list(Technique.objects.filter(pk__in=list(orders)))
            for technique in techniques:
                technique.order = orders[technique.pk]
            Technique.objects.bulk_update(techniques, ['order'])
    finally:
        invalidate_technique_tree()
    found = {technique.pk for technique in techniques}
    missing = [str(pk) for pk in orders if pk not in found]
    if missing:
        logger.warning('Reorder skipped %s unknown techniques', len(missing))
    return ReorderResult(updated=len(techniques), missing_ids=missing)


def sync_children() -> SyncResult:
    """Rebuild every ``children_ids`` list from ``parent`` links.

    Idempotent: lists are cleared and refilled in sibling order, so two
    consecutive runs produce identical lists. ``level`` and ``path_slugs``
    are left untouched.
    """
    try:
        with store_call('resync children'):
            Technique.objects.update(children_ids=[])
            rows = (
                Technique.objects.filter(parent__isnull=False)
                .order_by('order', 'name_ko', 'id')
                .values_list('id', 'parent_id')
            )
            grouped: dict[uuid.UUID, list[str]] = defaultdict(list)
            for child_id, parent_id in rows:
                child_key = str(child_id)
                if child_key not in grouped[parent_id]:
                    grouped[parent_id].append(child_key)
            parents = list(Technique.objects.filter(pk__in=list(grouped)))
            for parent in parents:
                parent.children_ids = grouped[parent.pk]
            Technique.objects.bulk_update(parents, ['children_ids'])
    finally:
        invalidate_technique_tree()
    linked = sum(len(parent.children_ids) for parent in parents)
    logger.info('Synced children for %s parents (%s links)', len(parents), linked)
    return SyncResult(linked=linked, parents=len(parents))


def rebuild_paths() -> int:
    """Recompute ``level`` and ``path_slugs`` for every reachable node."""
    updated = 0
    try:
        with store_call('load roots'):
            roots = list(Technique.objects.roots())
        for root in roots:
            if root.level != 1 or root.path_slugs:
                root.level, root.path_slugs = 1, []
                with store_call('update root'):
                    root.save(update_fields=['level', 'path_slugs'])
                updated += 1
            updated += _cascade_descendants(root)
    finally:
        invalidate_technique_tree()
    logger.info('Rebuilt paths for %s techniques', updated)
    return updated


def approve_technique(technique_id: Any) -> Technique:
    technique = store.find_by_id(technique_id)
    if technique.status != Technique.STATUS_PUBLISHED:
        technique.status = Technique.STATUS_PUBLISHED
        with store_call('approve technique'):
            technique.save(update_fields=['status'])
        invalidate_technique_tree()
        logger.info('Approved technique %s', technique.slug)
    return technique


def reject_technique(technique_id: Any) -> DeleteResult:
    result = delete_technique(technique_id)
    logger.info('Rejected technique %s', result.technique_id)
    return result
