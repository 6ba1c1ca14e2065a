from sitehealth.config import AI_CRAWLERS
from sitehealth.services.robots import analyze_robots, has_vendor_injection, parse_robots

CONFLICTING = """\
User-agent: ClaudeBot
Disallow: /

User-agent: *
Allow: /

User-agent: ClaudeBot
Allow: /
"""


def test_consecutive_user_agents_share_a_group():
    groups = parse_robots("User-agent: GPTBot\nUser-agent: CCBot\nDisallow: /private # keep out\n")
    assert len(groups) == 1
    assert groups[0].agents == ("GPTBot", "CCBot")
    assert groups[0].rules[0].path == "/private"


def test_first_group_wins_on_conflict():
    report = analyze_robots(CONFLICTING, ["ClaudeBot", "GPTBot"])
    assert [c.user_agent for c in report.conflicts] == ["ClaudeBot"]
    assert report.conflicts[0].severity == "critical"
    assert "ClaudeBot" in report.ai_crawlers_blocked
    assert "GPTBot" in report.ai_crawlers_allowed
    assert report.has_injection


def test_allow_first_then_disallow_counts_as_allowed():
    content = "User-agent: GPTBot\nAllow: /\n\nUser-agent: GPTBot\nDisallow: /\n"
    report = analyze_robots(content, ["GPTBot"])
    assert report.conflicts
    assert report.ai_crawlers_allowed == ("GPTBot",)
    assert not report.has_injection


def test_wildcard_disallow_blocks_unlisted_crawlers():
    report = analyze_robots("User-agent: *\nDisallow: /\n\nUser-agent: GPTBot\nAllow: /\n", ["GPTBot", "CCBot"])
    assert report.ai_crawlers_allowed == ("GPTBot",)
    assert report.ai_crawlers_blocked == ("CCBot",)


def test_agent_match_is_case_insensitive():
    report = analyze_robots("User-agent: gptbot\nDisallow: /\n", ["GPTBot"])
    assert report.ai_crawlers_blocked == ("GPTBot",)


def test_open_robots_allows_every_ai_crawler():
    report = analyze_robots("User-agent: *\nAllow: /\n", AI_CRAWLERS)
    assert len(report.ai_crawlers_allowed) == len(AI_CRAWLERS)
    assert not report.conflicts
    assert not report.has_injection


def test_vendor_banner_is_injection():
    content = "# Managed by Cloudflare\nUser-agent: *\nAllow: /\n"
    assert has_vendor_injection(content, parse_robots(content), AI_CRAWLERS)


def test_empty_robots():
    report = analyze_robots("", AI_CRAWLERS)
    assert report.fetched
    assert len(report.ai_crawlers_allowed) == len(AI_CRAWLERS)
