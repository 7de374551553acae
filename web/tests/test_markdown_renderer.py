import pytest

from techniques.services.markdown_renderer import render_to_html


@pytest.mark.parametrize(
    ('source', 'expected'),
    [
        ('**Frame** with the knee', '<strong>Frame</strong>'),
        ('- grip sleeve\n- hip escape', '<li>grip sleeve</li>'),
        ('~~old way~~', '<s>old way</s>'),
    ],
)
def test_markdown_descriptions_render(source, expected):
    assert expected in render_to_html(source)


def test_pasted_html_is_sanitised_not_rerendered():
    html = render_to_html('<p>Keep <em>posture</em></p><script>alert(1)</script>')

    assert html == '<p>Keep <em>posture</em></p>'


def test_unsafe_attributes_are_stripped():
    html = render_to_html('<a href="javascript:alert(1)">video</a> <img src="https://example.com/a.png" onerror="x()">')

    assert 'javascript:' not in html
    assert 'onerror' not in html
    assert 'https://example.com/a.png' in html


@pytest.mark.parametrize('empty', [None, ''])
def test_empty_description_renders_nothing(empty):
    assert render_to_html(empty) == ''
