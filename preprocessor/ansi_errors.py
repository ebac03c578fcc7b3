"""Exceptions raised while rendering ANSI code blocks."""

from __future__ import annotations


class AnsiError(ValueError):
    """Base class for every failure the preprocessor reports."""


class MalformedParameterList(AnsiError):
    def __init__(self, parameters: str) -> None:
        super().__init__(f"Malformed SGR parameter list: {parameters!r}")
        self.parameters = parameters


class ChapterError(AnsiError):
    """A chapter could not be transformed; the cause is chained."""

    def __init__(self, chapter: str, reason: str) -> None:
        super().__init__(f"Failed to render ANSI blocks in chapter {chapter!r}: {reason}")
        self.chapter = chapter


class ConfigError(AnsiError):
    pass
