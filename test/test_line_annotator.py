import re

from coverage_common import CoverageRange
from line_annotator import (
    CoverageClass, CoverageRangeCursor, SpanBalancer, annotate, line_label,
)


OPEN = re.compile(r"<span\b[^>]*>")
CLOSE = "</span>"

MULTILINE = (
    '<span class="k">def</span> <span class="nf">f</span>():\n'
    '    <span class="sd">"""first\n'
    '\n'
    '    second <span class="x">nested\n'
    '    still nested</span> done"""</span>\n'
    '    <span class="k">return</span> 1\n'
)


def balanced(line):
    return len(OPEN.findall(line)) == line.count(CLOSE)


def test_balancer_closes_and_reopens_across_lines():
    balancer = SpanBalancer()
    lines = list(balancer.balance_lines(MULTILINE.rstrip().split("\n")))

    assert lines[1] == '    <span class="sd">"""first</span>'
    assert lines[2] == ""
    assert lines[3] == '<span class="sd">    second <span class="x">nested</span></span>'
    assert lines[4] == '<span class="sd"><span class="x">    still nested</span> done"""</span>'
    assert lines[5] == '    <span class="k">return</span> 1'
    assert balancer.stack == []


def test_balancer_is_idempotent():
    once = list(SpanBalancer().balance_lines(MULTILINE.rstrip().split("\n")))
    twice = list(SpanBalancer().balance_lines(once))
    assert once == twice


def test_balancer_closes_unterminated_tag_at_end_of_file():
    balancer = SpanBalancer()
    lines = list(balancer.balance_lines(['<span class="c">/* open', "never closed"]))

    assert lines == ['<span class="c">/* open</span>', '<span class="c">never closed</span>']
    assert all(balanced(l) for l in lines)


def test_balancer_drops_stray_closing_tag():
    assert SpanBalancer().balance("a</span>b") == "ab"


def test_balancer_leaves_other_markup_alone():
    line = '&lt;span&gt; <b>bold</b> <spanner>'
    assert SpanBalancer().balance(line) == line


def test_cursor_classification():
    cursor = CoverageRangeCursor([CoverageRange(3, 5, 0), CoverageRange(6, 10, 4)])
    classes = [cursor.classify(n) for n in range(1, 13)]

    assert classes[0:2] == [CoverageClass.NONE] * 2
    assert classes[2:5] == [CoverageClass.MISS] * 3
    assert classes[5:10] == [CoverageClass.HIT] * 5
    assert classes[10:] == [CoverageClass.NONE] * 2


def test_cursor_accepts_raw_blocks_and_skips_gaps():
    cursor = CoverageRangeCursor([[2, 2, 1], [7, 8, 0]])

    assert cursor.classify(1) is CoverageClass.NONE
    assert cursor.classify(2) is CoverageClass.HIT
    assert cursor.classify(5) is CoverageClass.NONE
    assert cursor.classify(8) is CoverageClass.MISS
    assert cursor.classify(9) is CoverageClass.NONE
    assert cursor.current is None


def test_annotate_line_count_and_balance():
    rendered = list(annotate(MULTILINE + "\n\n", [[1, 1, 1], [2, 5, 0]]))

    assert [r.line_number for r in rendered] == [1, 2, 3, 4, 5, 6]
    assert all(balanced(r.markup) for r in rendered)
    assert [r.coverage_class for r in rendered] == [
        CoverageClass.HIT,
        CoverageClass.MISS,
        CoverageClass.MISS,
        CoverageClass.MISS,
        CoverageClass.MISS,
        CoverageClass.NONE,
    ]


def test_annotate_wraps_line_in_container():
    (line,) = annotate('<span class="k">pass</span>', [CoverageRange(1, 1, 2)])

    assert line.markup.startswith('<span class="line-hit" style="display: inline-block;')
    assert line.markup.endswith('>   1  <span class="k">pass</span></span>')


def test_annotate_is_restartable():
    ranges = [CoverageRange(1, 2, 0)]
    first = list(annotate(MULTILINE, ranges))
    second = list(annotate(MULTILINE, ranges))
    assert first == second


def test_annotate_empty_markup():
    assert list(annotate("  \n", [])) == []


def test_label_width_grows_with_line_count():
    markup = "\n".join(["x"] * 12345)
    rendered = list(annotate(markup, []))

    assert len(rendered) == 12345
    assert ">    1  x<" in rendered[0].markup
    assert ">12345  x<" in rendered[-1].markup
    assert line_label(7) == "   7"
