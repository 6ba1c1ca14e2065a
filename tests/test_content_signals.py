import re

from sitehealth.services import content_signals as sig


def test_heading_levels_in_document_order():
    html = "<h1>A</h1><p>x</p><h2>B</h2><h4>C</h4><h2>D</h2>"
    assert sig.heading_levels(html) == [1, 2, 4, 2]


def test_skipped_heading_level_fails():
    passed, msg = sig.check_heading_hierarchy([1, 2, 4])
    assert not passed
    assert "skipped" in msg
    assert "H2 → H4" in msg


def test_valid_heading_hierarchy_passes():
    passed, msg = sig.check_heading_hierarchy([1, 2, 2, 3])
    assert passed
    assert "2 H2s" in msg


def test_heading_rules_in_order():
    assert not sig.check_heading_hierarchy([])[0]
    passed, msg = sig.check_heading_hierarchy([1, 1, 2, 2])
    assert not passed and "Multiple H1" in msg
    passed, msg = sig.check_heading_hierarchy([1, 2, 3])
    assert not passed and "Only 1 H2" in msg


def test_syllable_estimate():
    assert sig.count_syllables("cat") == 1
    assert sig.count_syllables("table") == 2
    assert sig.count_syllables("make") == 1
    assert sig.count_syllables("walked") == 1
    assert sig.count_syllables("wanted") == 2


def test_readability_simple_text_scores_low():
    html = "<p>" + "The cat sat on the mat. " * 20 + "</p>"
    grade, ease = sig.readability(html)
    assert grade < 5
    assert ease > 80


def test_readability_empty():
    assert sig.readability("") == (0.0, 100.0)


def test_image_alt_stats():
    html = '<img src="a.jpg" alt="A view"><img src="b.jpg"><img src="c.jpg" alt="  ">'
    assert sig.image_alt_stats(html) == (3, 2)


def test_authenticity_counts_rules_not_matches():
    html = "<p>We visited twice. We visited again. Insider tip: go early. Don't miss the view.</p>"
    signals, generic = sig.authenticity_counts(html)
    assert signals == 3
    assert generic == 0


def test_generic_phrases_counted():
    html = "<p>In today's fast-paced world, look no further.</p>"
    assert sig.authenticity_counts(html)[1] == 2


def test_internal_links():
    pattern = re.compile(r"""<a[^>]+href=["'](?:/|https?://(?:www\.)?example\.com)[^"']*["'][^>]*>""", re.I)
    html = '<a href="/blog/x">x</a><a href="https://example.com/y">y</a><a href="https://other.com">z</a>'
    assert sig.count_internal_links(html, pattern) == 2


def test_affiliate_links_counted_per_occurrence():
    html = '<a href="https://www.booking.com/a">a</a> <a href="https://booking.com/b">b</a> <a href="https://viator.com">c</a>'
    assert sig.affiliate_link_count(html) == 3


def test_aio_issues():
    good = "<p>Borough Market is the best food market in London.</p><h2>When is it open?</h2>"
    issues, question_h2 = sig.aio_issues(good)
    assert issues == []
    assert question_h2 == 1

    bad = "<p>Have you ever wondered about markets? Throughout history people traded.</p><h2>Markets</h2>"
    issues, question_h2 = sig.aio_issues(bad)
    assert question_h2 == 0
    assert len(issues) == 3


def test_arabic_only():
    assert sig.is_arabic_only("ar", None, "<p>مرحبا</p>")
    assert not sig.is_arabic_only("ar", "<p>hi</p>", "<p>مرحبا</p>")
    assert not sig.is_arabic_only("en", None, "<p>مرحبا</p>")
