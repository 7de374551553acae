from __future__ import annotations

import logging
import uuid
from contextlib import contextmanager
from dataclasses import dataclass
from typing import Any, Iterator

from django.conf import settings
from django.core.exceptions import ValidationError as DjangoValidationError
from django.db import DatabaseError, IntegrityError, transaction
from django.db.models import F

from techniques.errors import ConflictError, NotFoundError, StoreError, ValidationError
from techniques.models import Technique, TechniqueQuerySet
from techniques.slugs import derive_slug, normalise_slug, unique_slug

logger = logging.getLogger(__name__)

ROOT_SENTINEL = 'root'
ALL_STATUSES = 'all'

TEXT_FIELDS = ('name_ko', 'name_en', 'description_ko', 'description_en', 'thumbnail_url', 'position_type')
CHOICE_FIELDS = ('type', 'primary_role', 'status')
STRING_LIST_FIELDS = ('aka_ko', 'aka_en', 'role_tags')
REFERENCE_FIELDS = ('sweeps_from_here', 'submissions_from_here', 'escapes_from_here')
MEDIA_FIELDS = ('videos', 'images')
INTEGER_FIELDS = ('difficulty', 'order')
BOOLEAN_FIELDS = ('is_core_position',)
LOCALIZED_FIELDS = ('name', 'description', 'aka')

LIGHT_FIELDS = ('id', 'name_ko', 'name_en', 'slug', 'parent_id', 'path_slugs', 'primary_role', 'type', 'order')


@dataclass
class TechniqueFilter:
    status: str | None = Technique.STATUS_PUBLISHED
    parent_id: str | None = None
    level: int | None = None
    type: str | None = None
    primary_role: str | None = None
    path_prefix: str | None = None
    search: str | None = None


@contextmanager
def store_call(action: str) -> Iterator[None]:
    try:
        yield
    except DatabaseError as exc:
        logger.exception('Technique store failure during %s', action)
        raise StoreError(f'{action} failed: {exc}') from exc


def _default_status() -> str:
    return settings.TECHNIQUE_HIERARCHY.get('DEFAULT_STATUS', Technique.STATUS_PENDING)


def normalise_status(value: Any) -> str:
    status = str(value or '').strip().lower()
    status = Technique.STATUS_ALIASES.get(status, status)
    valid = {choice for choice, _ in Technique.STATUS_CHOICES}
    if status not in valid:
        raise ValidationError(f'invalid status: {value!r}')
    return status


def parse_technique_id(value: Any, *, field: str = 'id') -> uuid.UUID:
    try:
        return uuid.UUID(str(value))
    except (TypeError, ValueError, AttributeError):
        raise ValidationError(f'{field} must be a valid technique id') from None


def _flatten_localized(payload: dict) -> dict:
    flat = dict(payload)
    for key in LOCALIZED_FIELDS:
        if key not in flat:
            continue
        value = flat.pop(key)
        if isinstance(value, str) and key != 'aka':
            flat[f'{key}_ko'] = value
            continue
        if not isinstance(value, dict):
            raise ValidationError(f'{key} must be an object with "ko" and optional "en" entries')
        for lang in ('ko', 'en'):
            if lang in value:
                flat[f'{key}_{lang}'] = value[lang]
    return flat


def _string_list(value: Any, field: str) -> list[str]:
    if value is None:
        return []
    if not isinstance(value, list):
        raise ValidationError(f'{field} must be a list')
    return [str(item).strip() for item in value if str(item).strip()]


def _reference_list(value: Any, field: str) -> list[str]:
    if value is None:
        return []
    if not isinstance(value, list):
        raise ValidationError(f'{field} must be a list of technique ids')
    ids = []
    for item in value:
        ref = str(parse_technique_id(item, field=field))
        if ref not in ids:
            ids.append(ref)
    if ids:
        with store_call(f'validate {field}'):
            found = Technique.objects.filter(pk__in=ids).count()
        if found != len(ids):
            raise ValidationError(f'{field} references unknown techniques')
    return ids


def _media_list(value: Any, field: str) -> list[dict]:
    if value is None:
        return []
    if not isinstance(value, list):
        raise ValidationError(f'{field} must be a list')
    entries = []
    for entry in value:
        if not isinstance(entry, dict) or not str(entry.get('url') or '').strip():
            raise ValidationError(f'{field} entries require a "url"')
        entries.append({str(key): val for key, val in entry.items()})
    return entries


def parse_integer(value: Any, field: str) -> int:
    if isinstance(value, bool):
        raise ValidationError(f'{field} must be an integer')
    if isinstance(value, float) and not value.is_integer():
        raise ValidationError(f'{field} must be a whole number')
    try:
        return int(value)
    except (TypeError, ValueError):
        raise ValidationError(f'{field} must be an integer') from None


def clean_fields(payload: dict) -> dict:
    """Map an API-shaped payload onto model field values.

    Hierarchy fields and unknown keys are dropped; callers decide what to
    do with ``slug`` and ``parent_id``.
    """
    if not isinstance(payload, dict):
        raise ValidationError('payload must be an object')
    flat = _flatten_localized(payload)
    values: dict[str, Any] = {}
    for field in TEXT_FIELDS:
        if field in flat:
            values[field] = '' if flat[field] is None else str(flat[field]).strip()
    for field in CHOICE_FIELDS:
        if field in flat:
            values[field] = str(flat[field] or '').strip()
    if 'status' in values:
        values['status'] = normalise_status(values['status'])
    for field in STRING_LIST_FIELDS:
        if field in flat:
            values[field] = _string_list(flat[field], field)
    for field in REFERENCE_FIELDS:
        if field in flat:
            values[field] = _reference_list(flat[field], field)
    for field in MEDIA_FIELDS:
        if field in flat:
            values[field] = _media_list(flat[field], field)
    for field in INTEGER_FIELDS:
        if field in flat:
            values[field] = parse_integer(flat[field], field)
    for field in BOOLEAN_FIELDS:
        if field in flat:
            values[field] = bool(flat[field])
    return values


def _format_django_errors(exc: DjangoValidationError) -> str:
    if hasattr(exc, 'error_dict'):
        parts = []
        for field, errors in sorted(exc.message_dict.items()):
            parts.append(f"{field}: {' '.join(errors)}")
        return '; '.join(parts)
    return ' '.join(exc.messages)


def _validate(technique: Technique) -> None:
    try:
        with store_call('validate technique'):
            technique.full_clean(exclude=['slug', 'parent'])
    except DjangoValidationError as exc:
        raise ValidationError(_format_django_errors(exc)) from exc


def slug_exists(slug: str) -> bool:
    with store_call('slug lookup'):
        return Technique.objects.filter(slug=slug).exists()


def assign_slug(draft: dict) -> str:
    explicit = draft.get('slug')
    if explicit:
        try:
            slug = normalise_slug(str(explicit))
        except ValueError as exc:
            raise ValidationError(str(exc)) from exc
        if slug_exists(slug):
            raise ConflictError(f'slug "{slug}" is already in use')
        return slug
    try:
        base = derive_slug(draft.get('name_en'), draft.get('name_ko'))
    except ValueError as exc:
        raise ValidationError('no slug could be derived from the name; provide an explicit slug') from exc
    return unique_slug(base, slug_exists)


def create(
    draft: dict,
    *,
    parent: Technique | None = None,
    level: int = 1,
    path_slugs: list[str] | None = None,
) -> Technique:
    values = clean_fields(draft)
    if not values.get('name_ko'):
        raise ValidationError('name.ko is required')
    if not values.get('description_ko'):
        raise ValidationError('description.ko is required')
    values.setdefault('status', _default_status())
    explicit = draft.get('slug')
    technique = Technique(
        slug=assign_slug({**values, 'slug': explicit}),
        parent=parent,
        level=level,
        path_slugs=list(path_slugs or []),
        **values,
    )
    _validate(technique)
    # A concurrent writer can take the slug between the lookup and the
    # insert; derived slugs get one fresh suffix before giving up.
    attempts = 1 if explicit else 2
    with store_call('create technique'):
        for attempt in range(attempts):
            try:
                with transaction.atomic():
                    technique.save(force_insert=True)
                return technique
            except IntegrityError:
                logger.warning('Slug %s was taken during create', technique.slug)
                if attempt + 1 == attempts:
                    raise ConflictError(f'slug "{technique.slug}" is already in use') from None
                technique.slug = assign_slug(values)


def find_by_id(technique_id: Any) -> Technique:
    try:
        pk = parse_technique_id(technique_id)
    except ValidationError:
        raise NotFoundError(f'technique {technique_id} not found') from None
    with store_call('load technique'):
        technique = Technique.objects.filter(pk=pk).first()
    if technique is None:
        raise NotFoundError(f'technique {technique_id} not found')
    return technique


def find_by_slug(slug: str) -> Technique:
    with store_call('load technique by slug'):
        technique = Technique.objects.filter(slug=slug).first()
    if technique is None:
        raise NotFoundError(f'technique "{slug}" not found')
    return technique


def find_many(filters: TechniqueFilter | None = None) -> TechniqueQuerySet:
    filters = filters or TechniqueFilter()
    queryset = Technique.objects.all()
    if filters.status and filters.status != ALL_STATUSES:
        queryset = queryset.filter(status=normalise_status(filters.status))
    if filters.parent_id is not None:
        if filters.parent_id == ROOT_SENTINEL:
            queryset = queryset.roots()
        else:
            queryset = queryset.filter(parent_id=parse_technique_id(filters.parent_id, field='parent_id'))
    if filters.level is not None:
        queryset = queryset.filter(level=parse_integer(filters.level, 'level'))
    if filters.type:
        queryset = queryset.filter(type=filters.type)
    if filters.primary_role:
        queryset = queryset.filter(primary_role=filters.primary_role)
    if filters.path_prefix:
        queryset = queryset.under_path(filters.path_prefix)
    if filters.search:
        queryset = queryset.filter(search_text__icontains=filters.search.strip().lower())
    return queryset.sibling_order()


def light_projection(queryset: TechniqueQuerySet) -> list[dict]:
    with store_call('list techniques'):
        rows = list(queryset.values(*LIGHT_FIELDS))
    return [
        {
            'id': str(row['id']),
            'name': {'ko': row['name_ko'], 'en': row['name_en']},
            'slug': row['slug'],
            'parent_id': str(row['parent_id']) if row['parent_id'] else None,
            'path_slugs': row['path_slugs'],
            'primary_role': row['primary_role'],
            'type': row['type'],
            'order': row['order'],
        }
        for row in rows
    ]


def update(technique_id: Any, patch: dict) -> Technique:
    technique = find_by_id(technique_id)
    if 'slug' in patch and patch['slug'] != technique.slug:
        raise ValidationError('slug cannot be changed once set')
    values = clean_fields(patch)
    changed = [field for field, value in values.items() if getattr(technique, field) != value]
    if not changed:
        return technique
    for field in changed:
        setattr(technique, field, values[field])
    _validate(technique)
    with store_call('update technique'):
        technique.save(update_fields=changed)
    return technique


def delete(technique_id: Any) -> None:
    pk = parse_technique_id(technique_id)
    with store_call('delete technique'):
        deleted, _ = Technique.objects.filter(pk=pk).delete()
    if not deleted:
        raise NotFoundError(f'technique {technique_id} not found')


def record_view(technique_id: Any) -> None:
    pk = parse_technique_id(technique_id)
    with store_call('record view'):
        Technique.objects.filter(pk=pk).update(view_count=F('view_count') + 1)
