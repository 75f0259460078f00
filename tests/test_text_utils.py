"""Tests for text helpers."""

from technews_ingest.processing.text_utils import clean_html_text, extract_summary, strip_tags, title_key


def test_clean_html_text_strips_tags_and_entities():
    html = "<p>This is <b>bold</b> text with &amp; entities.</p>"
    assert clean_html_text(html) == "This is bold text with & entities."


def test_clean_html_text_empty():
    assert clean_html_text("") == ""
    assert strip_tags("") == ""


def test_extract_summary_short_text_unchanged():
    assert extract_summary("<p>Short body</p>", 200) == "Short body"


def test_extract_summary_cuts_at_word_boundary():
    text = "abcd " * 50  # 250 chars, a space every fifth char
    summary = extract_summary(text, 200)

    assert summary.endswith("abcd...")
    assert len(summary) == 199 + 3
    assert "  " not in summary


def test_extract_summary_hard_cut_without_late_space():
    summary = extract_summary("x" * 300, 200)
    assert summary == "x" * 200 + "..."


def test_extract_summary_ignores_early_space():
    # The only space sits well before 80% of the limit
    text = "lead " + "y" * 300
    summary = extract_summary(text, 200)
    assert summary == text[:200] + "..."


def test_title_key():
    assert title_key("  Tesla Q3 Earnings ") == "tesla q3 earnings"
    assert title_key(None) == ""
