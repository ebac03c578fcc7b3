"""Locate ``ansi`` fenced code blocks in chapter markdown and render them."""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass

from markdown_it import MarkdownIt
from mdit_py_plugins.footnote import footnote_plugin
from mdit_py_plugins.tasklists import tasklists_plugin

from ansi_parser import render_block

logger = logging.getLogger(__name__)

DEFAULT_MARKER = "ansi"

# markdown-it normalizes all three line endings to "\n" before counting lines
_NEWLINE_RE = re.compile(r"\r\n|\r|\n")

# footnote definitions may contain indented fences
_md = (
    MarkdownIt("commonmark")
    .enable(["table", "strikethrough"])
    .use(footnote_plugin)
    .use(tasklists_plugin)
)


@dataclass(frozen=True)
class AnsiBlock:
    """A fenced region ``content[start:end]`` and its inner body."""

    start: int
    end: int
    body: str


def _line_bounds(content: str) -> list[tuple[int, int]]:
    """(start, end) offsets of every line, excluding the line terminator."""
    bounds = []
    pos = 0
    for match in _NEWLINE_RE.finditer(content):
        bounds.append((pos, match.start()))
        pos = match.end()
    bounds.append((pos, len(content)))
    return bounds


def find_ansi_blocks(content: str, marker: str = DEFAULT_MARKER) -> list[AnsiBlock]:
    """Find every fenced block whose info string is exactly ``marker``.

    Blocks come back in document order and never overlap.  The region runs
    from the opening fence to the end of the closing fence line; the
    newline after it stays part of the surrounding text.
    """
    blocks: list[AnsiBlock] = []
    bounds = None
    for token in _md.parse(content):
        if token.type != "fence" or token.info.strip() != marker or not token.map:
            continue
        if bounds is None:
            bounds = _line_bounds(content)
        first, last = token.map[0], token.map[1] - 1
        line_start, line_end = bounds[first]
        # skip indentation and blockquote markers in front of the fence
        start = content.find(token.markup, line_start, line_end)
        if start < 0:
            start = line_start
        blocks.append(AnsiBlock(start=start, end=bounds[last][1], body=token.content))
    return blocks


def highlight_chapter(
    content: str,
    marker: str = DEFAULT_MARKER,
    escape_html: bool = False,
) -> str:
    """Replace every ``marker`` block in ``content`` with rendered HTML.

    Text outside the blocks passes through unchanged.  Raises
    ``MalformedParameterList`` if a block cannot be rendered.
    """
    return splice_blocks(content, find_ansi_blocks(content, marker), escape_html)


def splice_blocks(content: str, blocks: list[AnsiBlock], escape_html: bool = False) -> str:
    """Substitute each located block in ``content`` with its rendered HTML."""
    if not blocks:
        return content
    logger.debug("rendering %d block(s)", len(blocks))

    out = []
    previous_end = 0
    for block in blocks:
        out.append(content[previous_end:block.start])
        out.append('<pre class="ansi"><code>')
        out.append(render_block(block.body, escape_html=escape_html))
        out.append("</code></pre>")
        previous_end = block.end
    out.append(content[previous_end:])
    return "".join(out)
