import pytest
from django.core.cache import cache
from django.test import Client

from techniques.services.hierarchy import create_technique

from .factories import TechniqueFactory, technique_draft

ADMIN_TOKEN = 'test-admin-token'


@pytest.fixture(autouse=True)
def _technique_settings(settings):
    settings.WIKI_ADMIN_TOKEN = ADMIN_TOKEN
    settings.TECHNIQUE_HIERARCHY = {
        **settings.TECHNIQUE_HIERARCHY,
        'CASCADE_DESCENDANTS': False,
        'DEFAULT_STATUS': 'pending',
        'SUBMISSION_RATE_LIMIT': 5,
        'SUBMISSION_RATE_WINDOW': 60,
    }
    cache.clear()
    yield
    cache.clear()


@pytest.fixture
def technique_factory():
    return TechniqueFactory


@pytest.fixture
def make_technique():
    def _make(name_en: str, parent=None, **overrides):
        draft = technique_draft(name_en, **overrides)
        if parent is not None:
            draft['parent_id'] = str(parent.pk)
        return create_technique(draft)

    return _make


@pytest.fixture
def api_client():
    return Client()


@pytest.fixture
def admin_headers():
    return {'HTTP_X_ADMIN_TOKEN': ADMIN_TOKEN}
