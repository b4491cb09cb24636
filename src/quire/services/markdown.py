"""Markdown rendering for post bodies."""

from markdown_it import MarkdownIt


class MarkdownRenderer:
    """Renders markdown to HTML and finds a document's title.

    The parser is built once and shared; construct one at startup and pass
    it to whatever needs it.
    """

    def __init__(self):
        self._md = (
            MarkdownIt("commonmark", {"html": True})
            .enable("table")
            .enable("strikethrough")
        )

    def render(self, body: str) -> str:
        """Render a markdown body to an HTML fragment."""
        return self._md.render(body)

    def first_heading(self, body: str) -> str | None:
        """Return the text of the first non-empty level-1 heading, if any."""
        tokens = self._md.parse(body)
        for i, token in enumerate(tokens):
            if token.type != "heading_open" or token.tag != "h1":
                continue
            inline = tokens[i + 1] if i + 1 < len(tokens) else None
            if inline is None or inline.type != "inline":
                continue
            text = "".join(
                child.content
                for child in inline.children or []
                if child.type in ("text", "code_inline")
            ).strip()
            if text:
                return text
        return None
