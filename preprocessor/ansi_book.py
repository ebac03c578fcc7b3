"""mdBook book model and the ANSI preprocessor that walks it.

mdbook hands a preprocessor ``[context, book]`` as JSON and expects the book
back.  Fields this preprocessor does not touch are kept as extras so they
round-trip unchanged.
"""

from __future__ import annotations

import logging
from typing import Any, Callable, Iterator, Literal, Union

from pydantic import BaseModel, ConfigDict, Field, RootModel

from ansi_blocks import highlight_chapter
from ansi_errors import AnsiError, ChapterError
from ansi_settings import PREPROCESSOR_NAME, load_settings

logger = logging.getLogger(__name__)

SUPPORTED_RENDERERS = frozenset({"html"})
SUPPORTED_MDBOOK_SERIES = "0.4"


class Chapter(BaseModel):
    model_config = ConfigDict(extra="allow")

    name: str
    content: str
    sub_items: list[BookItem] = Field(default_factory=list)


class ChapterItem(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    chapter: Chapter = Field(alias="Chapter")


class PartTitleItem(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    part_title: str = Field(alias="PartTitle")


BookItem = Union[ChapterItem, PartTitleItem, Literal["Separator"]]
Chapter.model_rebuild()


class Book(BaseModel):
    model_config = ConfigDict(extra="allow", populate_by_name=True)

    sections: list[BookItem] = Field(default_factory=list)
    non_exhaustive: None = Field(default=None, alias="__non_exhaustive")

    def to_json(self) -> str:
        return self.model_dump_json(by_alias=True)


class PreprocessorContext(BaseModel):
    model_config = ConfigDict(extra="allow")

    root: str = ""
    config: dict[str, Any] = Field(default_factory=dict)
    renderer: str = "html"
    mdbook_version: str = ""


class _Input(RootModel[tuple[PreprocessorContext, Book]]):
    pass


def parse_input(raw: str | bytes) -> tuple[PreprocessorContext, Book]:
    """Parse the ``[context, book]`` pair mdbook writes to stdin."""
    ctx, book = _Input.model_validate_json(raw).root
    return ctx, book


def load_input(payload: Any) -> tuple[PreprocessorContext, Book]:
    """Like ``parse_input`` for an already-decoded JSON value."""
    ctx, book = _Input.model_validate(payload).root
    return ctx, book


def iter_chapters(items: list[BookItem]) -> Iterator[Chapter]:
    """Yield chapters depth-first, each parent before its sub-chapters."""
    for item in items:
        if isinstance(item, ChapterItem):
            yield item.chapter
            yield from iter_chapters(item.chapter.sub_items)


def walk_chapters(book: Book, transform: Callable[[str], str]) -> int:
    """Replace every chapter's content with ``transform(content)``.

    Stops at the first failure and raises ``ChapterError``; chapters visited
    before it keep their new content.  Returns the number of chapters visited.
    """
    count = 0
    for chapter in iter_chapters(book.sections):
        try:
            chapter.content = transform(chapter.content)
        except AnsiError as exc:
            raise ChapterError(chapter.name, str(exc)) from exc
        count += 1
    return count


class AnsiPreprocessor:
    """Renders ``ansi`` code blocks as coloured HTML spans."""

    name = PREPROCESSOR_NAME

    def supports_renderer(self, renderer: str) -> bool:
        return renderer in SUPPORTED_RENDERERS

    def check_version(self, ctx: PreprocessorContext) -> bool:
        series = ".".join(ctx.mdbook_version.split(".")[:2])
        if not ctx.mdbook_version or series == SUPPORTED_MDBOOK_SERIES:
            return True
        logger.warning(
            "The mdbook-ansi preprocessor was written against mdbook %s.x, "
            "but we're being called from version %s",
            SUPPORTED_MDBOOK_SERIES,
            ctx.mdbook_version,
        )
        return False

    def run(self, ctx: PreprocessorContext, book: Book) -> Book:
        settings = load_settings(ctx.config)
        count = walk_chapters(
            book,
            lambda content: highlight_chapter(content, settings.marker, settings.escape_html),
        )
        logger.info("processed %d chapter(s)", count)
        return book
