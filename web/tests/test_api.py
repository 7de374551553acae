import json

import pytest

from techniques.models import Technique
from tests.factories import technique_draft

pytestmark = pytest.mark.django_db

BASE = '/api/v1/techniques/'


def _post(client, url, payload, **headers):
    return client.post(url, data=json.dumps(payload), content_type='application/json', **headers)


def _patch(client, url, payload):
    return client.patch(url, data=json.dumps(payload), content_type='application/json')


def test_list_filters_and_light_projection(api_client, make_technique):
    guard = make_technique('Guard')
    make_technique('Closed Guard', parent=guard, type='gi')
    make_technique('Mount')
    make_technique('Hidden', status='draft')

    resp = api_client.get(BASE)
    assert resp.status_code == 200
    body = resp.json()
    assert body['success'] is True
    assert {item['slug'] for item in body['data']} == {'guard', 'closed-guard', 'mount'}

    roots = api_client.get(BASE, {'parent_id': 'root'}).json()['data']
    assert [item['slug'] for item in roots] == ['guard', 'mount']

    under_guard = api_client.get(BASE, {'category': 'guard'}).json()['data']
    assert [item['slug'] for item in under_guard] == ['closed-guard']

    gi_only = api_client.get(BASE, {'type': 'gi', 'light': 'true'}).json()['data']
    assert gi_only == [
        {
            'id': gi_only[0]['id'],
            'name': {'ko': 'Closed Guard (ko)', 'en': 'Closed Guard'},
            'slug': 'closed-guard',
            'parent_id': str(guard.pk),
            'path_slugs': ['guard'],
            'primary_role': 'position',
            'type': 'gi',
            'order': 0,
        }
    ]

    searched = api_client.get(BASE, {'search': 'MOUNT'}).json()['data']
    assert [item['slug'] for item in searched] == ['mount']

    everything = api_client.get(BASE, {'status': 'all'}).json()['data']
    assert len(everything) == 4


def test_list_rejects_bad_filters(api_client):
    resp = api_client.get(BASE, {'level': 'deep'})
    assert resp.status_code == 400
    assert resp.json()['success'] is False


def test_anonymous_create_is_pending_and_rate_limited(api_client):
    for index in range(5):
        resp = _post(api_client, BASE, technique_draft(f'Sweep {index}'))
        assert resp.status_code == 201
        assert resp.json()['data']['status'] == Technique.STATUS_PENDING

    blocked = _post(api_client, BASE, technique_draft('Sweep 6'))
    assert blocked.status_code == 429
    assert blocked.json()['success'] is False
    assert Technique.objects.count() == 5


def test_admin_create_keeps_status_and_links_parent(api_client, admin_headers, make_technique):
    guard = make_technique('Guard')

    for index in range(6):
        resp = _post(api_client, BASE, technique_draft(f'Drill {index}', parent_id=str(guard.pk)), **admin_headers)
        assert resp.status_code == 201

    data = resp.json()['data']
    assert data['status'] == Technique.STATUS_PUBLISHED
    assert data['level'] == 2
    assert data['canonical_path'] == 'guard/drill-5'
    guard.refresh_from_db()
    assert data['id'] in guard.children_ids
    assert len(guard.children_ids) == 6


def test_create_validation_errors(api_client, admin_headers):
    resp = _post(api_client, BASE, {'name': {'en': 'No Korean'}}, **admin_headers)
    assert resp.status_code == 400

    missing_parent = _post(
        api_client,
        BASE,
        technique_draft('Lost', parent_id='00000000-0000-0000-0000-000000000000'),
        **admin_headers,
    )
    assert missing_parent.status_code == 404

    bad_json = api_client.post(BASE, data='{oops', content_type='application/json', **admin_headers)
    assert bad_json.status_code == 400


def test_create_conflicting_slug_returns_409(api_client, admin_headers, make_technique):
    make_technique('Kimura')

    resp = _post(api_client, BASE, technique_draft('Kimura Trap', slug='kimura'), **admin_headers)

    assert resp.status_code == 409


def test_detail_populates_references_and_counts_views(api_client, make_technique):
    guard = make_technique('Guard', description={'ko': '**가드** 설명'})
    sweep = make_technique('Scissor Sweep', parent=guard)
    closed = make_technique('Closed Guard', parent=guard, sweeps_from_here=[str(sweep.pk)])

    resp = api_client.get(f'{BASE}{closed.pk}')
    assert resp.status_code == 200
    data = resp.json()['data']
    assert data['parent']['slug'] == 'guard'
    assert data['sweeps'][0]['slug'] == 'scissor-sweep'
    assert data['children'] == []
    assert data['breadcrumbs'] == [{'name': 'Guard (ko)', 'slug': 'guard'}]
    assert data['view_count'] == 1

    parent = api_client.get(f'{BASE}{guard.pk}').json()['data']
    assert '<strong>가드</strong>' in parent['description_html']['ko']
    assert [child['slug'] for child in parent['children']] == ['scissor-sweep', 'closed-guard']

    closed.refresh_from_db()
    assert closed.view_count == 1


def test_detail_unknown_technique_returns_404(api_client):
    resp = api_client.get(f'{BASE}00000000-0000-0000-0000-000000000000')

    assert resp.status_code == 404
    assert resp.json()['success'] is False


def test_patch_reparents_and_rejects_slug_change(api_client, make_technique):
    guard = make_technique('Guard')
    mount = make_technique('Mount')
    escape = make_technique('Elbow Escape', parent=guard)

    resp = _patch(api_client, f'{BASE}{escape.pk}', {'parent_id': str(mount.pk), 'difficulty': 3})
    assert resp.status_code == 200
    data = resp.json()['data']
    assert data['parent_id'] == str(mount.pk)
    assert data['path_slugs'] == ['mount']
    assert data['difficulty'] == 3

    slug_change = _patch(api_client, f'{BASE}{escape.pk}', {'slug': 'renamed'})
    assert slug_change.status_code == 400

    cycle = _patch(api_client, f'{BASE}{mount.pk}', {'parent_id': str(escape.pk)})
    assert cycle.status_code == 400


def test_delete_orphans_children(api_client, make_technique):
    guard = make_technique('Guard')
    child = make_technique('Half Guard', parent=guard)

    resp = api_client.delete(f'{BASE}{guard.pk}')

    assert resp.status_code == 200
    assert resp.json()['data'] == {'id': str(guard.pk), 'orphaned_ids': [str(child.pk)]}
    child.refresh_from_db()
    assert child.parent_id is None
    assert api_client.delete(f'{BASE}{guard.pk}').status_code == 404


def test_reorder_endpoint(api_client, make_technique):
    guard = make_technique('Guard')
    first = make_technique('X', parent=guard, order=0)
    second = make_technique('Y', parent=guard, order=1)

    resp = api_client.put(
        f'{BASE}reorder',
        data=json.dumps({'items': [{'id': str(first.pk), 'order': 1}, {'_id': str(second.pk), 'order': 0}]}),
        content_type='application/json',
    )

    assert resp.status_code == 200
    assert resp.json()['data'] == {'updated': 2, 'missing_ids': []}
    tree = api_client.get(f'{BASE}tree').json()['data']
    assert [child['slug'] for child in tree[0]['children']] == ['y', 'x']

    invalid = api_client.put(f'{BASE}reorder', data=json.dumps({'items': 'nope'}), content_type='application/json')
    assert invalid.status_code == 400


def test_by_path_reports_canonical_location(api_client, make_technique):
    guard = make_technique('Guard')
    open_guard = make_technique('Open Guard', parent=guard)
    make_technique('X Guard', parent=open_guard)

    exact = api_client.get(f'{BASE}by-path/guard/open-guard/x-guard').json()['data']
    assert exact['slug'] == 'x-guard'
    assert exact['is_canonical'] is True

    stale = api_client.get(f'{BASE}by-path/old-guard/x-guard').json()['data']
    assert stale['canonical_path'] == 'guard/open-guard/x-guard'
    assert stale['is_canonical'] is False

    assert api_client.get(f'{BASE}by-path/guard/missing').status_code == 404


def test_admin_endpoints_require_token(api_client, settings):
    assert api_client.post('/api/v1/admin/sync-children').status_code == 401
    assert api_client.post(
        '/api/v1/admin/sync-children', HTTP_AUTHORIZATION='Bearer wrong'
    ).status_code == 401

    assert api_client.post('/api/v1/admin/sync-children', HTTP_X_ADMIN_TOKEN='tést').status_code == 401

    settings.WIKI_ADMIN_TOKEN = ''
    assert api_client.post('/api/v1/admin/sync-children', HTTP_X_ADMIN_TOKEN='').status_code == 401


def test_admin_sync_children_repairs_lists(api_client, technique_factory):
    guard = technique_factory(slug='guard')
    child = technique_factory(slug='closed-guard', parent=guard, level=2, path_slugs=['guard'])

    resp = api_client.post('/api/v1/admin/sync-children', HTTP_AUTHORIZATION='Bearer test-admin-token')

    assert resp.status_code == 200
    body = resp.json()
    assert body['data'] == {'linked': 1, 'parents': 1}
    assert body['message'] == 'Successfully synced childrenIds for 1 techniques.'
    guard.refresh_from_db()
    assert guard.children_ids == [str(child.pk)]


def test_admin_approve_and_reject(api_client, admin_headers, make_technique):
    guard = make_technique('Guard')
    pending = make_technique('Worm Guard', parent=guard, status='pending')

    approved = _post(api_client, '/api/v1/admin/approve', {'id': str(pending.pk)}, **admin_headers)
    assert approved.status_code == 200
    assert approved.json()['data']['status'] == Technique.STATUS_PUBLISHED

    assert _post(api_client, '/api/v1/admin/approve', {}, **admin_headers).status_code == 400

    rejected = _post(api_client, '/api/v1/admin/reject', {'id': str(pending.pk)}, **admin_headers)
    assert rejected.status_code == 200
    assert rejected.json()['message'] == 'Technique rejected and deleted'
    assert not Technique.objects.filter(pk=pending.pk).exists()
    guard.refresh_from_db()
    assert guard.children_ids == []


def test_django_admin_approve_action(admin_client, make_technique):
    pending = make_technique('Lasso Guard', status='pending')

    resp = admin_client.post(
        '/admin/techniques/technique/',
        {'action': 'approve_selected', '_selected_action': [str(pending.pk)]},
        follow=True,
    )

    assert resp.status_code == 200
    pending.refresh_from_db()
    assert pending.status == Technique.STATUS_PUBLISHED


def test_non_ascii_bearer_token_is_treated_as_anonymous(api_client):
    resp = _post(api_client, BASE, technique_draft('Ankle Lock'), HTTP_AUTHORIZATION='Bearer é')

    assert resp.status_code == 201
    assert resp.json()['data']['status'] == Technique.STATUS_PENDING


def test_django_admin_keeps_hierarchy_fields_read_only(admin_client, make_technique):
    guard = make_technique('Guard')
    child = make_technique('Closed Guard', parent=guard)

    resp = admin_client.get(f'/admin/techniques/technique/{child.pk}/change/')

    assert resp.status_code == 200
    content = resp.content.decode('utf-8')
    for field in Technique.HIERARCHY_FIELDS:
        assert f'name="{field}"' not in content
    assert 'name="name_ko"' in content
