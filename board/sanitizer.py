"""HTML sanitisation for user-submitted titles, post bodies and comments."""
import html

import nh3

# Rich-text editor output accepted in post bodies.
POST_CONTENT_TAGS: frozenset[str] = frozenset(
    {
        "p", "br", "hr", "span",
        "h1", "h2", "h3",
        "b", "strong", "i", "em", "u", "s",
        "ul", "ol", "li",
        "blockquote", "code", "pre",
        "a", "img",
    }
)
POST_CONTENT_ATTRS: dict[str, frozenset[str]] = {
    "a": frozenset({"href", "title", "target"}),
    "img": frozenset({"src", "alt", "width", "height"}),
}

# Titles and comments are plain text.
PLAIN_TEXT_TAGS: frozenset[str] = frozenset()


class HtmlSanitizer:
    """Strips disallowed markup; ``<script>``/``<style>`` lose their contents too."""

    def sanitize(
        self,
        markup: str,
        allowed_tags: frozenset[str] | set[str],
        allowed_attrs: dict[str, frozenset[str]] | None = None,
    ) -> str:
        return nh3.clean(
            markup,
            tags=set(allowed_tags),
            attributes={tag: set(attrs) for tag, attrs in (allowed_attrs or {}).items()},
        )

    def rich_text(self, markup: str) -> str:
        return self.sanitize(markup, POST_CONTENT_TAGS, POST_CONTENT_ATTRS).strip()

    def plain_text(self, text: str) -> str:
        # Tags are dropped; entities are decoded back so "&" stays "&".
        # Escaping for display belongs to whatever renders the text.
        return html.unescape(self.sanitize(text, PLAIN_TEXT_TAGS)).strip()
