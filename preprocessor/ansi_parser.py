"""ANSI SGR escape sequence renderer.

Code blocks in a book contain escapes written out as text (``\\x1b[31m`` or
``\\033[31m``), not raw ESC bytes.  They are converted into flat HTML spans:
  <span></span><span style="color: maroon;">red</span><span style=""> plain</span>
"""

from __future__ import annotations

import html
from dataclasses import dataclass, replace
from typing import Iterator, NamedTuple, Union

from ansi_errors import MalformedParameterList


class PaletteColour(NamedTuple):
    index: int


class RgbColour(NamedTuple):
    red: int
    green: int
    blue: int


Colour = Union[PaletteColour, RgbColour]

# 256-color palette: indices 0-15 map to CSS named colors
_COLOR_16_NAMES = [
    "black", "maroon", "green", "olive", "navy", "purple", "teal", "silver",
    "grey", "red", "lime", "yellow", "blue", "fuchsia", "aqua", "white",
]

_BASIC_FG = {code: code - 30 for code in range(30, 38)}
_BASIC_FG.update({code: code - 90 + 8 for code in range(90, 98)})

_BASIC_BG = {code: code - 40 for code in range(40, 48)}
_BASIC_BG.update({code: code - 100 + 8 for code in range(100, 108)})

_ATTRIBUTES = {
    1: ("bold", True), 22: ("bold", False),
    3: ("italic", True), 23: ("italic", False),
    4: ("underline", True), 24: ("underline", False),
    9: ("strikethrough", True), 29: ("strikethrough", False),
}


def _cube_channel(index: int) -> int:
    return 0 if index == 0 else index * 40 + 55


def colour_css(colour: Colour) -> str:
    """Convert a palette id or an RGB triple to a CSS colour expression."""
    if isinstance(colour, RgbColour):
        return f"rgb({colour.red},{colour.green},{colour.blue})"
    n = colour.index
    if n <= 15:
        return _COLOR_16_NAMES[n]
    if n <= 231:
        n -= 16
        b = n % 6
        g = (n - b) // 6 % 6
        r = (n - b - g * 6) // 36 % 6
        return f"rgb({_cube_channel(r)},{_cube_channel(g)},{_cube_channel(b)})"
    v = (n - 232) * 10 + 8
    return f"rgb({v},{v},{v})"


@dataclass(frozen=True)
class StyleState:
    fg: Colour | None = None
    bg: Colour | None = None
    bold: bool = False
    italic: bool = False
    underline: bool = False
    strikethrough: bool = False


def parse_parameters(text: str) -> list[int]:
    """Split an SGR parameter buffer on ``;``.

    Empty fields count as 0, so ``\\x1b[m`` is a reset.
    """
    params: list[int] = []
    for field in text.split(";"):
        if not field:
            params.append(0)
        elif field.isascii() and field.isdigit():
            params.append(int(field))
        else:
            raise MalformedParameterList(text)
    return params


def _extended_colour(params: list[int], start: int) -> tuple[Colour | None, int]:
    """Read the selector following 38/48.

    Returns the colour (if complete) and how many parameters were consumed.
    """
    if start >= len(params):
        return None, 0
    selector = params[start]
    if selector == 5:
        if start + 1 >= len(params):
            return None, 1
        values = params[start + 1:start + 2]
        colour: Colour = PaletteColour(*values)
    elif selector == 2:
        values = params[start + 1:start + 4]
        if len(values) < 3:
            return None, 1 + len(values)
        colour = RgbColour(*values)
    else:
        return None, 1
    if any(v > 255 for v in values):
        raise MalformedParameterList(";".join(str(p) for p in params))
    return colour, 1 + len(values)


def apply_sgr(state: StyleState, params: list[int]) -> StyleState:
    """Return the state that results from applying one SGR parameter list."""
    i = 0
    while i < len(params):
        p = params[i]
        if p == 0:
            state = StyleState()
        elif p in _ATTRIBUTES:
            name, value = _ATTRIBUTES[p]
            state = replace(state, **{name: value})
        elif p in _BASIC_FG:
            state = replace(state, fg=PaletteColour(_BASIC_FG[p]))
        elif p in _BASIC_BG:
            state = replace(state, bg=PaletteColour(_BASIC_BG[p]))
        elif p == 39:
            state = replace(state, fg=None)
        elif p == 49:
            state = replace(state, bg=None)
        elif p in (38, 48):
            colour, consumed = _extended_colour(params, i + 1)
            if colour is not None:
                state = replace(state, **{"fg" if p == 38 else "bg": colour})
            i += consumed
        i += 1
    return state


def to_css(state: StyleState) -> str:
    css = []
    if state.fg is not None:
        css.append(f"color: {colour_css(state.fg)};")
    if state.bg is not None:
        css.append(f"background-color: {colour_css(state.bg)};")
    if state.bold:
        css.append("font-weight: bold;")
    if state.italic:
        css.append("font-style: italic;")
    decorations = []
    if state.underline:
        decorations.append("underline")
    if state.strikethrough:
        decorations.append("line-through")
    if decorations:
        css.append(f"text-decoration: {' '.join(decorations)};")
    return "".join(css)


# Tokenizer states.  Each step replaces the state rather than mutating it.

@dataclass(frozen=True)
class Text:
    pass


@dataclass(frozen=True)
class Backslash:
    pass


@dataclass(frozen=True)
class HexLeader:
    progress: int = 0


@dataclass(frozen=True)
class OctalLeader:
    progress: int = 0


@dataclass(frozen=True)
class Sequence:
    buffer: str = ""


State = Union[Text, Backslash, HexLeader, OctalLeader, Sequence]


@dataclass(frozen=True)
class Literal:
    text: str


@dataclass(frozen=True)
class SgrSequence:
    parameters: str


Event = Union[Literal, SgrSequence]

_TEXT = Text()
_BACKSLASH = Backslash()
_PARAMETER_CHARS = frozenset("0123456789;")

# leader state -> (character after the backslash, remaining introducer)
_LEADERS = {
    HexLeader: ("x", "1b["),
    OctalLeader: ("0", "33["),
}


def _leader_prefix(state: HexLeader | OctalLeader) -> str:
    head, chain = _LEADERS[type(state)]
    return head + chain[:state.progress]


def step(state: State, char: str) -> tuple[State, tuple[Event, ...]]:
    """Advance the tokenizer by one character."""
    if isinstance(state, Text):
        if char == "\\":
            return _BACKSLASH, ()
        return state, (Literal(char),)

    if isinstance(state, Backslash):
        if char == "x":
            return HexLeader(0), ()
        if char == "0":
            return OctalLeader(0), ()
        # the backslash itself is dropped
        return _TEXT, (Literal(char),)

    if isinstance(state, (HexLeader, OctalLeader)):
        _, chain = _LEADERS[type(state)]
        if char != chain[state.progress]:
            return _TEXT, (Literal(_leader_prefix(state) + char),)
        if state.progress == len(chain) - 1:
            return Sequence(), ()
        return type(state)(state.progress + 1), ()

    if char == "m":
        return _TEXT, (SgrSequence(state.buffer),)
    if char in _PARAMETER_CHARS:
        return Sequence(state.buffer + char), ()
    # aborted: buffer and offending character are discarded
    return _TEXT, ()


def flush(state: State) -> tuple[Event, ...]:
    """Events owed at end of input for a state that never completed."""
    if isinstance(state, (HexLeader, OctalLeader)):
        return (Literal(_leader_prefix(state)),)
    return ()


def tokenize(text: str) -> Iterator[Event]:
    state: State = _TEXT
    for char in text:
        state, events = step(state, char)
        yield from events
    yield from flush(state)


def render_block(text: str, escape_html: bool = False) -> str:
    """Render the body of one code block to flat, style-scoped spans.

    The style starts from the reset state for every block.  A new span is
    opened at every SGR terminator, even when the CSS has not changed.
    """
    style = StyleState()
    out = ["<span>"]
    for event in tokenize(text):
        if isinstance(event, Literal):
            out.append(html.escape(event.text, quote=False) if escape_html else event.text)
        else:
            style = apply_sgr(style, parse_parameters(event.parameters))
            out.append(f'</span><span style="{to_css(style)}">')
    out.append("</span>")
    return "".join(out)
