from __future__ import annotations

import re
from functools import lru_cache

import bleach
from markdown_it import MarkdownIt


_HTML_SNIFFER = re.compile(r"<\s*([a-zA-Z!/?])")
_SCRIPT_BLOCK = re.compile(r'<script.*?>.*?</script>', re.IGNORECASE | re.DOTALL)

_ALLOWED_TAGS = sorted(
    {
        *bleach.sanitizer.ALLOWED_TAGS,
        'p', 'pre', 'code', 'span', 'div', 'img', 'h1', 'h2', 'h3', 'h4', 'h5', 'h6',
        'ul', 'ol', 'li', 'blockquote', 'hr', 'table', 'thead', 'tbody', 'tr', 'th', 'td',
        'em', 'strong', 'a', 'br', 'sup', 'sub', 'figure', 'figcaption', 's', 'del',
    }
)

_ALLOWED_ATTRIBUTES = {
    **bleach.sanitizer.ALLOWED_ATTRIBUTES,
    'a': ['href', 'title', 'name', 'target', 'rel'],
    'img': ['src', 'alt', 'title', 'width', 'height'],
    'span': ['class'],
    'div': ['class'],
    'code': ['class'],
    'pre': ['class'],
}

_ALLOWED_PROTOCOLS = ['http', 'https']


def _build_markdown() -> MarkdownIt:
    md = MarkdownIt('commonmark', {'html': True, 'linkify': False, 'breaks': True})
    md.enable('table')
    md.enable('strikethrough')
    return md


_markdown = _build_markdown()


def _looks_like_html(value: str) -> bool:
    return bool(_HTML_SNIFFER.search(value))


@lru_cache(maxsize=256)
def _render_markdown_cached(raw: str) -> str:
    return _markdown.render(raw)


def render_to_html(content: str | None) -> str:
    """Render a technique description (markdown or pasted HTML) to safe HTML."""
    if not content:
        return ''
    if _looks_like_html(content):
        html = content
    else:
        html = _render_markdown_cached(content)
    html = _SCRIPT_BLOCK.sub('', html)
    return bleach.clean(
        html,
        tags=_ALLOWED_TAGS,
        attributes=_ALLOWED_ATTRIBUTES,
        protocols=_ALLOWED_PROTOCOLS,
        strip=True,
    )
