#!/usr/bin/env python3
"""
Shared coverage data structures and parsing logic for the coverage-view tools.
"""

import re
from pathlib import Path
from dataclasses import dataclass, field
from typing import Optional, Union
from datetime import datetime


COV_HIGH = 80.0
COV_MED = 50.0

START = 0
END = 1
COUNT = 2


@dataclass(frozen=True)
class CoverageRange:
    start_line: int
    end_line: int
    hit_count: int

    @classmethod
    def from_block(cls, block) -> "CoverageRange":
        return cls(start_line=int(block[START]), end_line=int(block[END]), hit_count=int(block[COUNT]))

    def contains(self, line_no: int) -> bool:
        return self.start_line <= line_no <= self.end_line


@dataclass
class FileRecord:
    path: str
    hits: int = 0
    lines: int = 0

    @property
    def ratio(self) -> float:
        return coverage_ratio(self.hits, self.lines)


@dataclass
class Profile:
    filename: str
    blocks: list = field(default_factory=list)
    hits: int = 0
    lines: int = 0

    @property
    def ranges(self) -> list:
        return load_ranges(self.blocks)


def coverage_ratio(hits: int, lines: int) -> float:
    """Return hits as a percentage of lines, 0.0 for files without lines."""
    if lines == 0:
        return 0.0
    return hits * 100.0 / lines


def format_ratio(hits: int, lines: int) -> str:
    if lines == 0:
        return "-"
    return f"{coverage_ratio(hits, lines):.1f}%"


def coverage_class(pct: float) -> str:
    """Return CSS class based on coverage percentage."""
    if pct >= COV_HIGH:
        return "cov-high"
    elif pct >= COV_MED:
        return "cov-med"
    return "cov-low"


def merge_blocks(blocks: list) -> list:
    """Merge adjacent blocks that carry the same execution count."""
    if len(blocks) < 2:
        return blocks

    block = list(blocks[0])
    merged = [block]
    for b in blocks[1:]:
        if block[END] + 1 == b[START] and block[COUNT] == b[COUNT]:
            block[END] = b[END]
        else:
            block = list(b)
            merged.append(block)
    return merged


def postprocess(profiles: list):
    """Merge blocks and recount hit/total lines for every profile."""
    for p in profiles:
        p.blocks = merge_blocks(p.blocks)

        p.hits = 0
        p.lines = 0
        for b in p.blocks:
            length = b[END] - b[START] + 1
            if b[COUNT] > 0:
                p.hits += length
            p.lines += length


def parse_lcov(text: str) -> list:
    """Parse LCOV format coverage data into one profile per source file.

    Records for the same SF (one per test name is common) are merged, with
    counts summed on lines they share.
    """
    per_file = {}
    filename = ""
    counts = {}

    for line in text.splitlines():
        line = line.strip()
        if not line:
            continue

        if line.startswith("TN:"):
            counts = {}
        elif line.startswith("SF:"):
            filename = line[3:]
        elif line.startswith("DA:"):
            parts = line[3:].split(",")
            if len(parts) < 2:
                raise ValueError(f"malformed DA record: {line}")
            line_no = int(parts[0])
            hit_count = int(parts[1])
            counts[line_no] = counts.get(line_no, 0) + hit_count
        elif line == "end_of_record":
            if not filename:
                raise ValueError("no SF found for this TN")
            merged = per_file.setdefault(filename, {})
            for line_no, hit_count in counts.items():
                merged[line_no] = merged.get(line_no, 0) + hit_count
            filename = ""
            counts = {}

    if not per_file:
        raise ValueError("no profile found")

    return [
        Profile(filename=filename, blocks=[[l, l, c] for l, c in sorted(merged.items())])
        for filename, merged in per_file.items()
    ]


GOCOV_BLOCK = re.compile(r'^(.+):(\d+)\.(\d+),(\d+)\.(\d+) (\d+) (\d+)$')


def parse_gocov(text: str) -> list:
    """Parse a Go cover profile, expanding every statement block to its lines.

    Number of statements is ignored: a block spanning lines 10-12 marks all
    three lines with the block's count, whatever its statement count.
    """
    per_file = {}
    seen_mode = False

    for line in text.splitlines():
        line = line.strip()
        if not line:
            continue
        if line.startswith("mode:"):
            seen_mode = True
            continue
        match = GOCOV_BLOCK.match(line)
        if not match:
            raise ValueError(f"malformed cover profile line: {line}")
        filename = match.group(1)
        start_line = int(match.group(2))
        end_line = int(match.group(4))
        count = int(match.group(7))
        lines = per_file.setdefault(filename, [])
        for l in range(start_line, end_line + 1):
            lines.append([l, l, count])

    if not seen_mode:
        raise ValueError("no profile found")

    profiles = []
    for filename, lines in per_file.items():
        lines.sort(key=lambda b: b[START])
        blocks = []
        for b in lines:
            if blocks and blocks[-1][START] == b[START]:
                blocks[-1][COUNT] += b[COUNT]
            else:
                blocks.append(b)
        profiles.append(Profile(filename=filename, blocks=blocks))

    return profiles


def parse_coverage(source: Union[str, Path]) -> list:
    """Parse an LCOV file or, failing that, a Go cover profile.

    `source` is either a path to the profile or its contents.
    """
    if isinstance(source, Path):
        text = source.read_text()
    else:
        text = source

    try:
        profiles = parse_lcov(text)
    except ValueError as lcov_error:
        try:
            profiles = parse_gocov(text)
        except ValueError:
            # LCOV markers mean the LCOV error is the one worth reporting
            if "SF:" in text or "end_of_record" in text:
                raise lcov_error
            raise

    postprocess(profiles)
    return profiles


def relative_filename(filename: str, source_root: Path) -> str:
    """Strip the source root prefix from an absolute profile filename."""
    root = str(source_root)
    if filename.startswith(root + "/"):
        return filename[len(root) + 1:]
    return filename


def make_file_list(profiles: list, revision: str = "", time: Optional[datetime] = None) -> dict:
    """Build the file list record: per-file hits/lines plus totals."""
    files = [
        {"filename": p.filename, "hits": p.hits, "lines": p.lines}
        for p in profiles
    ]
    files.sort(key=lambda f: f["filename"])

    if time is None:
        time = datetime.now()

    return {
        "files": files,
        "meta": {
            "hits": sum(f["hits"] for f in files),
            "lines": sum(f["lines"] for f in files),
            "time": time.isoformat(),
            "revision": revision,
        },
    }


def make_code_record(profile: Profile, code: str) -> dict:
    return {
        "filename": profile.filename,
        "code": code,
        "blocks": [list(b) for b in profile.blocks],
    }


def load_file_list(record: dict) -> tuple:
    """Turn a file list record into FileRecords and its meta section."""
    files = [
        FileRecord(path=f["filename"], hits=int(f["hits"]), lines=int(f["lines"]))
        for f in record.get("files", [])
    ]
    meta = record.get("meta", {})
    return files, meta


def load_ranges(blocks: list) -> list:
    return [CoverageRange.from_block(b) for b in blocks]
