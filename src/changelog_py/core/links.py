"""Issue, pull request and user link substitution."""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    import re
    from collections.abc import Sequence

    from changelog_py.config.models import LinkParser


@dataclass(frozen=True)
class Link:
    text: str
    href: str


@dataclass(frozen=True)
class _Span:
    start: int
    end: int
    parser_index: int
    match: re.Match[str]


class LinkSubstituter:
    """Replaces link parser matches with formatted links.

    All parsers are matched against the original text. Overlapping
    matches are resolved by taking the earliest start, then the
    longest span, then the parser declared first. Replacement text is
    never scanned again.
    """

    def __init__(
        self,
        parsers: Sequence[LinkParser],
        link_format: str = "[{text}]({href})",
    ) -> None:
        self.parsers = list(parsers)
        self.link_format = link_format

    def _spans(self, text: str) -> list[_Span]:
        candidates = [
            _Span(m.start(), m.end(), i, m)
            for i, parser in enumerate(self.parsers)
            for m in parser.pattern.finditer(text)
            if m.end() > m.start()
        ]
        candidates.sort(key=lambda s: (s.start, -(s.end - s.start), s.parser_index))

        chosen: list[_Span] = []
        last_end = 0
        for span in candidates:
            if span.start < last_end:
                continue
            chosen.append(span)
            last_end = span.end
        return chosen

    def _link(self, span: _Span) -> Link:
        parser = self.parsers[span.parser_index]
        text = span.match.expand(parser.text) if parser.text else span.match.group(0)
        return Link(text=text, href=span.match.expand(parser.href))

    def find(self, text: str) -> list[Link]:
        """Return the links found in ``text``, in order of appearance."""
        return [self._link(span) for span in self._spans(text)]

    def substitute(self, text: str) -> tuple[str, list[Link]]:
        """Replace every chosen match with its formatted link.

        Returns:
            ``(substituted_text, links)``
        """
        pieces: list[str] = []
        links: list[Link] = []
        cursor = 0
        for span in self._spans(text):
            link = self._link(span)
            links.append(link)
            pieces.append(text[cursor : span.start])
            pieces.append(self.link_format.format(text=link.text, href=link.href))
            cursor = span.end
        pieces.append(text[cursor:])
        return "".join(pieces), links
