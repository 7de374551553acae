from __future__ import annotations

import hmac
import logging
import time

from django.conf import settings
from django.core.cache import cache
from django.http import HttpRequest

logger = logging.getLogger(__name__)


class RateLimitExceeded(Exception):
    pass


def client_ip(request: HttpRequest) -> str:
    forwarded = request.META.get('HTTP_X_FORWARDED_FOR', '')
    if forwarded:
        return forwarded.split(',')[0].strip()
    return request.META.get('REMOTE_ADDR') or '127.0.0.1'


def check_rate_limit(token: str, *, scope: str = 'submit') -> int:
    """Fixed-window counter; raises once ``token`` exceeds the limit in the current window."""
    limit = settings.TECHNIQUE_HIERARCHY['SUBMISSION_RATE_LIMIT']
    window = settings.TECHNIQUE_HIERARCHY['SUBMISSION_RATE_WINDOW']
    bucket = int(time.time() // window)
    key = f'rate:{scope}:{token}:{bucket}'
    cache.add(key, 0, timeout=window)
    try:
        count = cache.incr(key)
    except ValueError:
        cache.set(key, 1, timeout=window)
        count = 1
    if count > limit:
        logger.warning('Rate limit exceeded for %s (%s requests)', token, count)
        raise RateLimitExceeded(f'rate limit exceeded: {limit} requests per {window}s')
    return count


def _presented_token(request: HttpRequest) -> str:
    header = request.META.get('HTTP_X_ADMIN_TOKEN', '')
    if header:
        return header.strip()
    auth = request.META.get('HTTP_AUTHORIZATION', '')
    if auth.lower().startswith('bearer '):
        return auth[7:].strip()
    return ''


def is_admin(request: HttpRequest) -> bool:
    expected = settings.WIKI_ADMIN_TOKEN
    if not expected:
        return False
    presented = _presented_token(request)
    return bool(presented) and hmac.compare_digest(presented.encode('utf-8'), expected.encode('utf-8'))


def require_admin(request: HttpRequest) -> None:
    if not is_admin(request):
        raise PermissionError('admin token required')
