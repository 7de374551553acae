import pytest

from techniques.slugs import derive_slug, normalise_slug, unique_slug


def test_derive_slug_prefers_english_name():
    assert derive_slug('Scissor Sweep', '시저 스윕') == 'scissor-sweep'


def test_derive_slug_uses_parenthesised_english_from_primary_name():
    assert derive_slug('', '하프 가드 (Half Guard)') == 'half-guard'


def test_derive_slug_falls_back_to_unicode_primary_name():
    assert derive_slug(None, '암바') == '암바'


def test_derive_slug_rejects_empty_names():
    with pytest.raises(ValueError):
        derive_slug('', '   ')


def test_unique_slug_appends_numeric_suffix():
    taken = {'armbar', 'armbar-1'}
    assert unique_slug('armbar', taken.__contains__) == 'armbar-2'
    assert unique_slug('kimura', taken.__contains__) == 'kimura'


@pytest.mark.parametrize(
    ('raw', 'expected'),
    [
        ('X Guard', 'x-guard'),
        ('  de-la-riva ', 'de-la-riva'),
        ('Rear Naked Choke!', 'rear-naked-choke'),
    ],
)
def test_normalise_slug(raw, expected):
    assert normalise_slug(raw) == expected


def test_normalise_slug_rejects_blank():
    with pytest.raises(ValueError):
        normalise_slug('!!!')
