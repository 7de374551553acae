from __future__ import annotations

import json
import logging
from typing import Any, Dict

from django.http import HttpRequest, JsonResponse
from django.views.decorators.csrf import csrf_exempt
from django.views.decorators.http import require_http_methods

from techniques.errors import TechniqueError
from techniques.models import Technique
from techniques.services import hierarchy, store
from techniques.services.markdown_renderer import render_to_html
from techniques.services.tree import (
    find_by_canonical_path,
    get_technique_tree,
    resolve_breadcrumbs,
    resolve_canonical_path,
)

from .guards import RateLimitExceeded, check_rate_limit, client_ip, is_admin, require_admin

logger = logging.getLogger(__name__)


def _json_error(message: str, status: int = 400) -> JsonResponse:
    return JsonResponse({'success': False, 'error': message}, status=status)


def _error_response(exc: TechniqueError) -> JsonResponse:
    return _json_error(exc.message, status=exc.status_code)


def _ok(data: Any = None, status: int = 200, **extra: Any) -> JsonResponse:
    return JsonResponse({'success': True, 'data': data, **extra}, status=status)


def _parse_json(request: HttpRequest) -> Dict[str, Any]:
    try:
        if not request.body:
            return {}
        payload = json.loads(request.body.decode('utf-8'))
    except (json.JSONDecodeError, UnicodeDecodeError) as exc:
        raise ValueError(f'Invalid JSON payload: {exc}')
    if not isinstance(payload, dict):
        raise ValueError('JSON payload must be an object')
    return payload


def _technique_to_dict(technique: Technique) -> dict:
    return {
        'id': str(technique.id),
        'slug': technique.slug,
        'name': {'ko': technique.name_ko, 'en': technique.name_en},
        'aka': {'ko': technique.aka_ko, 'en': technique.aka_en},
        'description': {'ko': technique.description_ko, 'en': technique.description_en},
        'type': technique.type,
        'primary_role': technique.primary_role,
        'role_tags': technique.role_tags,
        'difficulty': technique.difficulty,
        'order': technique.order,
        'is_core_position': technique.is_core_position,
        'position_type': technique.position_type or None,
        'parent_id': str(technique.parent_id) if technique.parent_id else None,
        'children_ids': technique.children_ids,
        'level': technique.level,
        'path_slugs': technique.path_slugs,
        'canonical_path': resolve_canonical_path(technique),
        'sweeps_from_here': technique.sweeps_from_here,
        'submissions_from_here': technique.submissions_from_here,
        'escapes_from_here': technique.escapes_from_here,
        'thumbnail_url': technique.thumbnail_url or None,
        'videos': technique.videos,
        'images': technique.images,
        'status': technique.status,
        'view_count': technique.view_count,
        'like_count': technique.like_count,
        'created_at': technique.created_at.isoformat(),
        'updated_at': technique.updated_at.isoformat(),
    }


def _summaries(ids: list[str]) -> list[dict]:
    if not ids:
        return []
    found = {
        str(row['id']): row
        for row in Technique.objects.filter(pk__in=ids).values('id', 'slug', 'name_ko', 'name_en', 'type', 'primary_role')
    }
    return [
        {
            'id': key,
            'slug': found[key]['slug'],
            'name': {'ko': found[key]['name_ko'], 'en': found[key]['name_en']},
            'type': found[key]['type'],
            'primary_role': found[key]['primary_role'],
        }
        for key in ids
        if key in found
    ]


def _technique_detail(technique: Technique) -> dict:
    data = _technique_to_dict(technique)
    with store.store_call('populate references'):
        parents = _summaries([str(technique.parent_id)] if technique.parent_id else [])
        data['parent'] = parents[0] if parents else None
        data['children'] = _summaries(technique.children_ids)
        data['sweeps'] = _summaries(technique.sweeps_from_here)
        data['submissions'] = _summaries(technique.submissions_from_here)
        data['escapes'] = _summaries(technique.escapes_from_here)
    data['breadcrumbs'] = resolve_breadcrumbs(technique.path_slugs)
    data['description_html'] = {
        'ko': render_to_html(technique.description_ko),
        'en': render_to_html(technique.description_en),
    }
    return data


def _filter_from_query(request: HttpRequest) -> store.TechniqueFilter:
    params = request.GET
    return store.TechniqueFilter(
        status=params.get('status') or Technique.STATUS_PUBLISHED,
        parent_id=params.get('parent_id') or None,
        level=params.get('level') or None,
        type=params.get('type') or None,
        primary_role=params.get('primary_role') or None,
        path_prefix=params.get('category') or None,
        search=params.get('search') or params.get('q') or None,
    )


def _is_truthy(value: str | None) -> bool:
    return (value or '').lower() in {'1', 'true', 'yes', 'on'}


@csrf_exempt
@require_http_methods(['GET', 'POST'])
def techniques_collection(request: HttpRequest) -> JsonResponse:
    if request.method == 'GET':
        try:
            queryset = store.find_many(_filter_from_query(request))
            if _is_truthy(request.GET.get('light')):
                return _ok(store.light_projection(queryset))
            with store.store_call('list techniques'):
                techniques = list(queryset)
        except TechniqueError as exc:
            return _error_response(exc)
        return _ok([_technique_to_dict(technique) for technique in techniques])

    admin = is_admin(request)
    if not admin:
        try:
            check_rate_limit(client_ip(request))
        except RateLimitExceeded as exc:
            return _json_error(str(exc), status=429)
    try:
        payload = _parse_json(request)
    except ValueError as exc:
        return _json_error(str(exc))
    if not admin:
        payload['status'] = Technique.STATUS_PENDING
    try:
        technique = hierarchy.create_technique(payload)
    except TechniqueError as exc:
        return _error_response(exc)
    return _ok(_technique_to_dict(technique), status=201)


@csrf_exempt
@require_http_methods(['GET', 'PUT', 'PATCH', 'DELETE'])
def technique_detail(request: HttpRequest, technique_id) -> JsonResponse:
    if request.method == 'GET':
        try:
            technique = store.find_by_id(technique_id)
            store.record_view(technique.pk)
            technique.view_count += 1
            return _ok(_technique_detail(technique))
        except TechniqueError as exc:
            return _error_response(exc)

    if request.method in ('PUT', 'PATCH'):
        try:
            payload = _parse_json(request)
        except ValueError as exc:
            return _json_error(str(exc))
        try:
            technique = hierarchy.update_technique(technique_id, payload)
        except TechniqueError as exc:
            return _error_response(exc)
        return _ok(_technique_to_dict(technique))

    try:
        result = hierarchy.delete_technique(technique_id)
    except TechniqueError as exc:
        return _error_response(exc)
    return _ok({'id': result.technique_id, 'orphaned_ids': result.orphaned_ids})


@require_http_methods(['GET'])
def technique_by_path(request: HttpRequest, path: str) -> JsonResponse:
    try:
        technique = find_by_canonical_path(path)
        data = _technique_detail(technique)
    except TechniqueError as exc:
        return _error_response(exc)
    data['requested_path'] = path.strip('/')
    data['is_canonical'] = data['requested_path'] == data['canonical_path']
    return _ok(data)


@csrf_exempt
@require_http_methods(['PUT', 'POST'])
def techniques_reorder(request: HttpRequest) -> JsonResponse:
    try:
        payload = _parse_json(request)
    except ValueError as exc:
        return _json_error(str(exc))
    try:
        result = hierarchy.reorder_techniques(payload.get('items'))
    except TechniqueError as exc:
        return _error_response(exc)
    return _ok({'updated': result.updated, 'missing_ids': result.missing_ids})


@require_http_methods(['GET'])
def technique_tree(request: HttpRequest) -> JsonResponse:
    try:
        tree = get_technique_tree()
    except TechniqueError as exc:
        return _error_response(exc)
    return _ok([node.to_dict() for node in tree])


@csrf_exempt
@require_http_methods(['POST'])
def admin_sync_children(request: HttpRequest) -> JsonResponse:
    try:
        require_admin(request)
    except PermissionError as exc:
        return _json_error(str(exc), status=401)
    try:
        result = hierarchy.sync_children()
    except TechniqueError as exc:
        return _error_response(exc)
    return _ok(
        {'linked': result.linked, 'parents': result.parents},
        message=f'Successfully synced childrenIds for {result.linked} techniques.',
    )


def _moderation_target(request: HttpRequest) -> str:
    payload = _parse_json(request)
    technique_id = payload.get('id')
    if not technique_id:
        raise ValueError('id required')
    return technique_id


@csrf_exempt
@require_http_methods(['POST'])
def admin_approve(request: HttpRequest) -> JsonResponse:
    try:
        require_admin(request)
    except PermissionError as exc:
        return _json_error(str(exc), status=401)
    try:
        technique_id = _moderation_target(request)
    except ValueError as exc:
        return _json_error(str(exc))
    try:
        technique = hierarchy.approve_technique(technique_id)
    except TechniqueError as exc:
        return _error_response(exc)
    return _ok(_technique_to_dict(technique))


@csrf_exempt
@require_http_methods(['POST'])
def admin_reject(request: HttpRequest) -> JsonResponse:
    try:
        require_admin(request)
    except PermissionError as exc:
        return _json_error(str(exc), status=401)
    try:
        technique_id = _moderation_target(request)
    except ValueError as exc:
        return _json_error(str(exc))
    try:
        result = hierarchy.reject_technique(technique_id)
    except TechniqueError as exc:
        return _error_response(exc)
    return _ok(
        {'id': result.technique_id, 'orphaned_ids': result.orphaned_ids},
        message='Technique rejected and deleted',
    )
