from __future__ import annotations

import re
from typing import Callable

from django.utils.text import slugify

MAX_SLUG_LENGTH = 100
SLUG_PATTERN = re.compile(r'^[\w][\w-]*$', re.UNICODE)
_PAREN_NAME = re.compile(r'\(([^)]+)\)')


def _slugify(raw: str) -> str:
    slug = slugify(raw or '')
    if not slug:
        slug = slugify(raw or '', allow_unicode=True)
    return slug[:MAX_SLUG_LENGTH].strip('-')


def normalise_slug(raw: str) -> str:
    slug = slugify((raw or '').strip(), allow_unicode=True)
    if not slug:
        raise ValueError('slug cannot be empty')
    if len(slug) > MAX_SLUG_LENGTH:
        raise ValueError(f'slug must be <= {MAX_SLUG_LENGTH} characters')
    if not SLUG_PATTERN.match(slug):
        raise ValueError('slug must contain only letters, numbers, hyphen, or underscore')
    return slug


def derive_slug(name_en: str | None, name_ko: str | None) -> str:
    """Build a slug from the English name, falling back to the primary name.

    Seeded category names look like ``"하프 가드 (Half Guard)"``; the
    parenthesised English part wins when no English name is given.
    """
    candidates = [name_en or '']
    match = _PAREN_NAME.search(name_ko or '')
    if match:
        candidates.append(match.group(1))
    candidates.append(name_ko or '')
    for candidate in candidates:
        slug = _slugify(candidate.strip())
        if slug:
            return slug
    raise ValueError('cannot derive a slug from an empty name')


def unique_slug(base: str, exists: Callable[[str], bool]) -> str:
    if not exists(base):
        return base
    suffix = 1
    while True:
        candidate = f'{base}-{suffix}'
        if not exists(candidate):
            return candidate
        suffix += 1
