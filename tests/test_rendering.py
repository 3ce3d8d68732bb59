import asyncio

from autoaudit.services.report_renderer import question_label, render_report_html
from autoaudit.services.typesetter import MathTypesetter, latex_to_html, typeset_html


def test_latex_fractions_roots_and_scripts():
    assert latex_to_html(r"\frac{1}{2}") == "1/2"
    assert latex_to_html(r"\frac{x+1}{x-1}") == "(x+1)/(x-1)"
    assert latex_to_html(r"\sqrt{x^2+1}") == "√(x<sup>2</sup>+1)"
    assert latex_to_html(r"\sqrt[3]{8}") == "<sup>3</sup>√8"
    assert latex_to_html(r"x_{n+1} \le \alpha") == "x<sub>n+1</sub> ≤ α"


def test_latex_sets_and_unknown_commands():
    assert latex_to_html(r"x \in \mathbb{R}") == "x ∈ ℝ"
    assert latex_to_html(r"\sin x") == "sin x"
    assert latex_to_html(r"\left( a \right)") == "( a )"


def test_typeset_html_marks_inline_and_block_math():
    markup = "<p>Ta có $a^2$ và $$\\frac{a}{b}$$</p>"
    assert typeset_html(markup) == (
        '<p>Ta có <span class="math">a<sup>2</sup></span> và '
        '<span class="math-block">a/b</span></p>'
    )


def test_escaped_dollar_does_not_delimit_math():
    assert typeset_html("<p>$\\$5 + x$</p>") == '<p><span class="math">$5 + x</span></p>'
    assert typeset_html("giá 5\\$ và $x$") == 'giá 5\\$ và <span class="math">x</span>'


def test_typesetter_coroutine():
    assert asyncio.run(MathTypesetter().typeset("$\\pi$")) == '<span class="math">π</span>'


def test_question_label_strips_prefix():
    assert question_label("Câu 12") == "12"
    assert question_label("3") == "3"


def test_report_html_lists_every_partition(report):
    markup = render_report_html(report)

    assert "BIÊN BẢN PHẢN BIỆN ĐỀ THI &amp; ĐÁP ÁN" in markup
    assert "Phần I: Câu hỏi trắc nghiệm (Chọn 1 đáp án đúng)" in markup
    assert "Phần II: Câu hỏi trắc nghiệm Đúng/Sai" in markup
    assert "Phần III: Câu hỏi trắc nghiệm trả lời ngắn" in markup
    assert "Đ-S-Đ-S" in markup
    assert "(Họ tên)" in markup
    assert "data-path" not in markup


def test_report_html_placeholder_for_empty_partition(report):
    reviews = report.detailed_reviews.model_copy(update={"part3": []})
    markup = render_report_html(report.model_copy(update={"detailed_reviews": reviews}))
    assert "(Không ghi nhận lỗi sai hoặc phản biện cho phần này)" in markup


def test_edit_mode_exposes_report_paths(report):
    markup = render_report_html(report, editing=True)

    assert 'data-path="detailedReviews.part2.0.answer"' in markup
    assert 'data-path="overview.matrixAlignment"' in markup
    assert 'data-path="auditorName"' in markup


def test_report_text_is_escaped(report):
    hostile = report.model_copy(update={"subject": "<script>x</script>"})
    assert "<script>x</script>" not in render_report_html(hostile)
