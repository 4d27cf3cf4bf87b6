#!/usr/bin/env python3
"""
Coverage Report Generator

Reads an LCOV file or a Go cover profile and writes a browsable HTML report:
1. index.html with the directory tree and aggregated coverage per directory
2. one page per source file with syntax highlighting and hit/miss lines

Optionally dumps the same data as JSON records and prints the tree.
"""

import sys
import json
import html
import argparse
from pathlib import Path
from datetime import datetime

import pygments
from pygments.formatters.html import HtmlFormatter
from pygments.lexers import get_lexer_for_filename, guess_lexer
from pygments.lexers.special import TextLexer
from pygments.util import ClassNotFound

from coverage_common import (
    FileRecord, Profile, coverage_class, coverage_ratio, format_ratio,
    parse_coverage, relative_filename, make_file_list, make_code_record,
)
from coverage_tree import TreeNode, TreeViewModel
from line_annotator import CoverageClass, annotate


THEMES = {
    "dark": {"style": "github-dark", "bg": "#0d1117", "text": "#c9d1d9", "hit": "darkblue", "miss": "darkred"},
    "light": {"style": "default", "bg": "#ffffff", "text": "#24292f", "hit": "palegreen", "miss": "pink"},
}


def load_source_file(filepath: Path) -> str:
    """Load source text, empty when the file can not be read."""
    try:
        return filepath.read_text()
    except (OSError, UnicodeDecodeError) as e:
        print(f"Warning: can not read {filepath}: {e}", file=sys.stderr)
        return ""


def highlight_source(code: str, filename: str, formatter: HtmlFormatter) -> str:
    """Highlight code with the lexer for its file name, guessing if unknown."""
    try:
        lexer = get_lexer_for_filename(filename, code, stripnl=False)
    except ClassNotFound:
        try:
            lexer = guess_lexer(code, stripnl=False)
        except ClassNotFound:
            lexer = TextLexer(stripnl=False)
    return pygments.highlight(code, lexer, formatter)


def page_stem(rel_path: str) -> str:
    """Flatten a relative path into a file name, distinct for distinct paths.

    Underscores are doubled first, so "_s" can only come from a "/".
    """
    return rel_path.replace("_", "__").replace("/", "_s")


def page_name(rel_path: str) -> str:
    return page_stem(rel_path) + ".html"


def generate_file_html(profile: Profile, markup: str, output_dir: Path, theme: dict, formatter: HtmlFormatter) -> str:
    """Generate HTML page for a single file."""
    rendered = list(annotate(markup, profile.ranges))
    src = "\n".join(line.markup for line in rendered)
    pct_class = coverage_class(coverage_ratio(profile.hits, profile.lines))

    file_html = f'''<!DOCTYPE html>
<html lang="en">
<head>
<meta charset="UTF-8">
<title>Coverage: {html.escape(profile.filename)}</title>
<style>
body {{
  font-family: -apple-system, BlinkMacSystemFont, "Segoe UI", Roboto, sans-serif;
  background: {theme["bg"]};
  color: {theme["text"]};
  margin: 0;
  padding: 20px;
}}
a {{ color: #64b5f6; }}
.cov-high {{ color: #4caf50; }}
.cov-med {{ color: #ff9800; }}
.cov-low {{ color: #f44336; }}
pre.source {{
  padding: 0;
  border: solid 1px darkgray;
  font-family: "SF Mono", "Consolas", "Monaco", monospace;
  font-size: 13px;
}}
.{CoverageClass.HIT.css_class} {{ background: {theme["hit"]}; }}
.{CoverageClass.MISS.css_class} {{ background: {theme["miss"]}; }}
{formatter.get_style_defs(".source")}
</style>
</head>
<body>
<a href="index.html">&larr; Back to Coverage Report</a>
<h1>{html.escape(profile.filename)}</h1>
<p>Coverage <span class="{pct_class}">{format_ratio(profile.hits, profile.lines)}</span>
&middot; Hit {profile.hits} Lines &middot; Miss {profile.lines - profile.hits} Lines</p>
<pre class="source"><code>{src}</code></pre>
</body>
</html>'''

    name = page_name(profile.filename)
    (output_dir / name).write_text(file_html)
    return name


def tree_html(node: TreeNode) -> str:
    """Render a node and its children as nested <details> elements."""
    ratio = f'<span class="{coverage_class(node.ratio)}">{format_ratio(node.hits, node.lines)}</span>'
    counts = f'<span class="counts">{node.hits}/{node.lines}</span>'
    if not node.is_dir:
        return (f'<div class="file"><a href="{page_name(node.path)}">{html.escape(node.name)}</a> '
                f'{ratio} {counts}</div>')

    children = "\n".join(tree_html(child) for child in node.children)
    opened = " open" if node.expanded else ""
    return (f'<details{opened}><summary>{html.escape(node.name)}/ {ratio} {counts}</summary>\n'
            f'{children}\n</details>')


def generate_index_html(model: TreeViewModel, meta: dict, output_dir: Path, theme: dict):
    """Generate index.html with the collapsible directory tree."""
    root = model.root
    body = "\n".join(tree_html(child) for child in root.children) or '<div class="empty">No coverage data available</div>'
    revision = html.escape(meta.get("revision") or "-")

    index_html = f'''<!DOCTYPE html>
<html lang="en">
<head>
<meta charset="UTF-8">
<title>Coverage Report</title>
<style>
body {{
  font-family: -apple-system, BlinkMacSystemFont, "Segoe UI", Roboto, sans-serif;
  background: {theme["bg"]};
  color: {theme["text"]};
  margin: 0;
  padding: 20px;
}}
a {{ color: #64b5f6; text-decoration: none; }}
details {{ margin-left: 20px; }}
details > .file {{ margin-left: 20px; }}
summary {{ cursor: pointer; }}
.counts {{ color: #888; font-size: 0.85em; }}
.cov-high {{ color: #4caf50; }}
.cov-med {{ color: #ff9800; }}
.cov-low {{ color: #f44336; }}
.empty {{ color: #888; font-style: italic; }}
</style>
</head>
<body>
<h1>Coverage Report</h1>
<p>Revision {revision} &middot; <span class="{coverage_class(root.ratio)}">{format_ratio(root.hits, root.lines)}</span>
({root.hits:,} / {root.lines:,} lines)</p>
{body}
<div class="timestamp">Generated: {html.escape(meta.get("time", ""))}</div>
</body>
</html>'''

    (output_dir / "index.html").write_text(index_html)


def print_summary(model: TreeViewModel):
    """Print the visible rows of the tree, one per line."""
    print(f"{'='*60}")
    for node in model.rows():
        name = node.name + "/" if node.is_dir else node.name
        label = "  " * node.depth + name
        print(f"  {label:40s} {format_ratio(node.hits, node.lines):>7s}  ({node.hits}/{node.lines})")
    root = model.root
    print(f"  {'Total':40s} {format_ratio(root.hits, root.lines):>7s}  ({root.hits}/{root.lines})")
    print(f"{'='*60}")


def generate_report(profiles: list, source_root: Path, output_dir: Path, revision: str = "",
                    theme_name: str = "dark", write_json: bool = False) -> TreeViewModel:
    """Write the HTML (and optionally JSON) report and return the tree model."""
    output_dir.mkdir(parents=True, exist_ok=True)
    theme = THEMES[theme_name]
    formatter = HtmlFormatter(nowrap=True, style=theme["style"])

    file_list = make_file_list(profiles, revision, datetime.now())
    model = TreeViewModel.from_files([FileRecord(p.filename, p.hits, p.lines) for p in profiles])

    if write_json:
        (output_dir / "files.json").write_text(json.dumps(file_list, indent=2))

    for profile in profiles:
        code = load_source_file(source_root / profile.filename).rstrip()
        markup = highlight_source(code, profile.filename, formatter) if code else ""
        generate_file_html(profile, markup, output_dir, theme, formatter)
        if write_json:
            record = make_code_record(profile, code)
            (output_dir / (page_stem(profile.filename) + ".json")).write_text(json.dumps(record))

    generate_index_html(model, file_list["meta"], output_dir, theme)
    return model


def main():
    parser = argparse.ArgumentParser(description="Generate an HTML coverage report with a directory tree")
    parser.add_argument("profile", help="LCOV file or Go cover profile")
    parser.add_argument("--source-root", default=".", help="Source root directory")
    parser.add_argument("--output", default="coverage-report", help="Output directory for reports")
    parser.add_argument("--revision", default="", help="Revision shown in the report header")
    parser.add_argument("--theme", choices=sorted(THEMES), default="dark", help="Color theme (default: dark)")
    parser.add_argument("--json", action="store_true", help="Also write files.json and per-file JSON records")
    parser.add_argument("--summary", action="store_true", help="Print the directory tree with coverage")

    args = parser.parse_args()

    profile_path = Path(args.profile).resolve()
    source_root = Path(args.source_root).resolve()
    output_dir = Path(args.output).resolve()

    print(f"Collecting coverage data...")
    print(f"  Profile:      {profile_path}")
    print(f"  Source root:  {source_root}")
    print(f"  Output:       {output_dir}")

    try:
        profiles = parse_coverage(profile_path)
    except (OSError, ValueError) as e:
        print(f"Error: can not parse {profile_path}: {e}", file=sys.stderr)
        sys.exit(1)

    for p in profiles:
        p.filename = relative_filename(p.filename, source_root)
    print(f"  Found {len(profiles)} files")

    print("\nGenerating HTML report...")
    try:
        model = generate_report(profiles, source_root, output_dir, args.revision, args.theme, args.json)
    except OSError as e:
        print(f"Error: can not write report: {e}", file=sys.stderr)
        sys.exit(1)
    print(f"  HTML: {output_dir}/index.html")

    if args.summary:
        print()
        print_summary(model)

    print(f"\nOpen {output_dir}/index.html in a browser to view the report.")


if __name__ == "__main__":
    main()
