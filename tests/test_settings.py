from sitehealth.config import AuditorConfig
from sitehealth.services.settings import (
    apply_overrides, configs_from, get_settings, load_standards, standards_from, update_settings,
)
from sitehealth.standards import DEFAULT_STANDARDS, content_type_for_url


def test_apply_overrides_replaces_known_fields():
    cfg = apply_overrides(AuditorConfig(), {"max_urls": 10, "key_pages": ["/", "/guides"], "bogus": 1})
    assert cfg.max_urls == 10
    assert cfg.key_pages == ("/", "/guides")
    assert not hasattr(cfg, "bogus")
    assert AuditorConfig().max_urls == 50


def test_apply_overrides_ignores_non_dict():
    cfg = AuditorConfig()
    assert apply_overrides(cfg, None) is cfg
    assert apply_overrides(cfg, []) is cfg


def test_standards_from_overrides():
    s = standards_from({"blog": {"min_words": 800}, "quality": {"readability_max": 10}})
    assert s.content_types["blog"].min_words == 800
    assert s.content_types["news"].min_words == DEFAULT_STANDARDS.content_types["news"].min_words
    assert s.quality.readability_max == 10
    assert DEFAULT_STANDARDS.content_types["blog"].min_words == 1000


def test_configs_from_overrides():
    auditor, research, orch = configs_from({"orchestrator": {"max_duration_s": 20}, "research": {"max_entries": 3}})
    assert orch.max_duration_s == 20
    assert research.max_entries == 3
    assert auditor == AuditorConfig()


def test_content_type_for_url():
    assert content_type_for_url("/news/a") == "news"
    assert content_type_for_url("/ar/news/a") == "news"
    assert content_type_for_url("/information/visa") == "information"
    assert content_type_for_url("/guides/x") == "guide"
    assert content_type_for_url("/blog/x") == "blog"
    assert content_type_for_url("/anything") == "blog"


async def test_settings_row_created_on_first_read(session):
    s = await get_settings(session)
    assert s.id is not None
    assert s.gate_overrides == {}
    again = await get_settings(session)
    assert again.id == s.id


async def test_update_settings_feeds_standards(session):
    await update_settings(session, gate_overrides={"news": {"min_words": 50}})
    standards = await load_standards(session)
    assert standards.thresholds_for_url("/news/x").min_words == 50
    s = await get_settings(session)
    assert s.orchestrator_overrides == {}
