"""
core/sanitize.py -- Markup stripping for user-supplied text.

Every free-text field that reaches storage (post title/body, reservation
place) passes through strip_markup() first. nh3 (Rust ammonia bindings) is
configured with an empty tag allow-list: tags are removed, their text content
is kept, and the content of <script>/<style> is dropped entirely.

nh3 returns HTML, so "&" and a bare "<" come back as entities. strip_markup()
decodes them, which stores plain text ("Tom & Jerry", "a < b"). Decoding can
expose tags that arrived entity-encoded ("&lt;b&gt;"), so clean and decode
repeat until the text stops changing. Output escaping belongs to the
renderer: Jinja2 autoescape in templates, JSON encoding in the API.

Callers trim the result and reject empty strings -- "<b> </b>" strips to
whitespace and must not count as content.
"""

import html

import nh3


def strip_markup(text: str) -> str:
    """Return text with all HTML markup removed, as plain text."""
    while True:
        cleaned = html.unescape(nh3.clean(text, tags=set(), attributes={}))
        if cleaned == text:
            return cleaned
        text = cleaned


def clean_text(value: str) -> str:
    """Trim, strip markup, and trim again so tag-only input becomes ""."""
    return strip_markup(value.strip()).strip()
