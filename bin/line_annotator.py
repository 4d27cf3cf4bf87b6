#!/usr/bin/env python3
"""
Per-line coverage annotation of syntax-highlighted source.

The highlighter hands us one markup string in which a <span> opened on one
line may only be closed several lines later (block comments, docstrings,
multi-line strings). Each source line is rendered on its own, so every line
has to be repaired into a self-contained fragment before it is tagged with
its coverage class.
"""

import re
from dataclasses import dataclass
from enum import Enum
from typing import Iterator, Optional

from coverage_common import CoverageRange


LINE_NUMBER_WIDTH = 4
LINE_STYLE = "display: inline-block; width: 100%; padding-left: 10px"


class CoverageClass(Enum):
    NONE = "none"
    HIT = "hit"
    MISS = "miss"

    @property
    def css_class(self) -> str:
        return f"line-{self.value}"


@dataclass(frozen=True)
class RenderedLine:
    line_number: int
    markup: str
    coverage_class: CoverageClass


class SpanBalancer:
    """Close tags left open at the end of a line and reopen them on the next.

    The stack of open tags is kept across lines for a whole file, so one
    balancer serves exactly one annotation pass.
    """

    def __init__(self, tag: str = "span"):
        self.close_tag = f"</{tag}>"
        self.pattern = re.compile(rf"<{tag}(?:\s[^>]*)?>|</{tag}>")
        self.stack = []

    def balance(self, line: str) -> str:
        # blank lines need no repair, open tags wait for the next line
        if not line:
            return line

        carried = "".join(self.stack)
        out = [carried]
        pos = 0
        for match in self.pattern.finditer(line):
            out.append(line[pos:match.start()])
            tag = match.group(0)
            if tag == self.close_tag:
                if self.stack:
                    self.stack.pop()
                    out.append(tag)
            else:
                self.stack.append(tag)
                out.append(tag)
            pos = match.end()
        out.append(line[pos:])
        out.append(self.close_tag * len(self.stack))
        return "".join(out)

    def balance_lines(self, lines) -> Iterator[str]:
        for line in lines:
            yield self.balance(line)


class CoverageRangeCursor:
    """Forward-only cursor over sorted, disjoint coverage ranges.

    Line numbers passed to classify() must increase from call to call.
    """

    def __init__(self, ranges):
        self.ranges = [
            r if isinstance(r, CoverageRange) else CoverageRange.from_block(r)
            for r in ranges
        ]
        self.index = 0

    @property
    def current(self) -> Optional[CoverageRange]:
        if self.index < len(self.ranges):
            return self.ranges[self.index]
        return None

    def classify(self, line_no: int) -> CoverageClass:
        while self.index < len(self.ranges) and self.ranges[self.index].end_line < line_no:
            self.index += 1

        block = self.current
        if block is None or not block.contains(line_no):
            return CoverageClass.NONE
        if block.hit_count > 0:
            return CoverageClass.HIT
        return CoverageClass.MISS


def line_label(line_no: int, width: int = LINE_NUMBER_WIDTH) -> str:
    return str(line_no).rjust(width)


def render_line(line_no: int, code: str, cls: CoverageClass, width: int = LINE_NUMBER_WIDTH) -> str:
    """Wrap one balanced line of code in its full-width coverage container."""
    return (
        f'<span class="{cls.css_class}" style="{LINE_STYLE}">'
        f'{line_label(line_no, width)}  {code}</span>'
    )


def annotate(markup: str, ranges) -> Iterator[RenderedLine]:
    """Yield one RenderedLine per line of highlighted markup.

    `ranges` must be sorted by start line and pairwise disjoint. Every call
    starts from fresh balancer and cursor state.
    """
    markup = markup.rstrip()
    if not markup:
        return
    lines = markup.split("\n")
    width = max(LINE_NUMBER_WIDTH, len(str(len(lines))))
    balancer = SpanBalancer()
    cursor = CoverageRangeCursor(ranges)

    for line_no, line in enumerate(lines, 1):
        code = balancer.balance(line)
        cls = cursor.classify(line_no)
        yield RenderedLine(
            line_number=line_no,
            markup=render_line(line_no, code, cls, width),
            coverage_class=cls,
        )
