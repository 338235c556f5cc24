"""Tests for jepcrawl.config module."""

import json

import pytest
from crawl4ai.async_configs import CacheMode

from jepcrawl.config import (
    DEFAULT_PROFILE,
    DEFAULT_TIMEOUT_SECONDS,
    DEFAULT_USER_AGENT,
    CrawlProfile,
    FetchSettings,
    LinkRules,
    _convert_cache_mode,
    build_render_run_config,
    fetch_settings_from_env,
    list_profiles,
    load_profile,
    load_profile_file,
)


def _profile_data(**overrides):
    data = {
        "name": "custom",
        "listing_urls": ["https://example.org/list"],
        "section_names": ["Summary"],
    }
    data.update(overrides)
    return data


class TestBuiltinProfiles:
    def test_list_profiles(self):
        assert list_profiles() == ["jdk-11-17", "jdk-17-21", "jdk-21-25"]

    def test_default_profile_exists(self):
        assert DEFAULT_PROFILE in list_profiles()

    @pytest.mark.parametrize("name", ["jdk-11-17", "jdk-17-21", "jdk-21-25"])
    def test_every_profile_loads(self, name):
        profile = load_profile(name)
        assert profile.name == name
        assert profile.listing_urls[0].startswith("https://openjdk.org/")
        assert len(profile.listing_urls) == 2
        assert "Summary" in profile.section_names
        assert all(ref.url.startswith("https://openjdk.org/jeps/") for ref in profile.fallback)
        assert profile.link_rules.canonical_host == "openjdk.org"

    def test_flat_profile(self):
        profile = load_profile("jdk-17-21")
        assert profile.section_strategy == "flat"
        assert profile.link_rules.strategy == "regex"
        assert profile.max_section_chars == 1000
        assert profile.section_names[:3] == ["Summary", "Goals", "Non-Goals"]

    def test_selector_profile(self):
        profile = load_profile("jdk-21-25")
        assert profile.section_strategy == "structured"
        assert profile.link_rules.strategy == "selector"
        assert profile.link_rules.title_filter
        assert profile.retry_alternate_host is True
        assert profile.full_text_chars == 3000
        assert profile.capture_page_title is True

    @pytest.mark.parametrize(
        "name, ids",
        [
            ("jdk-11-17", []),
            ("jdk-17-21", ["406", "409", "420", "427", "441", "440", "430", "444", "446", "453"]),
            ("jdk-21-25", ["455", "466", "467", "468", "469", "471", "472", "473", "474", "475"]),
        ],
    )
    def test_fallback_ids(self, name, ids):
        assert [ref.id for ref in load_profile(name).fallback] == ids

    def test_fallback_titles_carry_jep_prefix(self):
        fallback = load_profile("jdk-21-25").fallback
        assert fallback[0].title == (
            "JEP 455: Primitive Types in Patterns, instanceof, and switch (Preview)"
        )
        assert all(ref.title.startswith(f"JEP {ref.id}: ") for ref in fallback)

    def test_excerpt_settings(self):
        assert load_profile("jdk-17-21").full_text_chars == 3000
        assert load_profile("jdk-17-21").capture_page_title is False
        assert load_profile("jdk-11-17").full_text_chars is None

        assert profile.render is False

    def test_unknown_profile(self):
        with pytest.raises(ValueError, match="Unknown profile 'jdk-1-2'"):
            load_profile("jdk-1-2")


class TestCrawlProfileFromDict:
    def test_defaults(self):
        profile = CrawlProfile.from_dict(_profile_data())
        assert profile.section_strategy == "structured"
        assert profile.delay_seconds == 1.0
        assert profile.max_section_chars is None
        assert profile.render is False
        assert profile.full_text_chars is None
        assert profile.capture_page_title is False
        assert profile.fallback == []
        assert profile.link_rules == LinkRules()
        assert profile.fetch.user_agent == DEFAULT_USER_AGENT

    def test_fallback_entries(self):
        profile = CrawlProfile.from_dict(
            _profile_data(fallback=[{"id": 1, "title": "JEP 1: Process", "url": "u"}])
        )
        assert profile.fallback[0].id == "1"

    def test_excerpt_fields(self):
        profile = CrawlProfile.from_dict(
            _profile_data(full_text_chars="500", capture_page_title=True)
        )
        assert profile.full_text_chars == 500
        assert profile.capture_page_title is True

    def test_zero_full_text_chars_disables(self):
        assert CrawlProfile.from_dict(_profile_data(full_text_chars=0)).full_text_chars is None

    def test_negative_delay_clamped(self):
        assert CrawlProfile.from_dict(_profile_data(delay_seconds=-3)).delay_seconds == 0.0

    @pytest.mark.parametrize(
        "overrides, message",
        [
            ({"name": ""}, "missing 'name'"),
            ({"listing_urls": []}, "no listing_urls"),
            ({"section_names": []}, "no section_names"),
            ({"section_strategy": "xpath"}, "Unknown section strategy"),
            ({"link_rules": {"strategy": "css"}}, "Unknown link strategy"),
            ({"link_rules": {"path_pattern": r"/jeps/\d+"}}, "named group 'id'"),
        ],
    )
    def test_invalid(self, overrides, message):
        with pytest.raises(ValueError, match=message):
            CrawlProfile.from_dict(_profile_data(**overrides))


class TestLoadProfileFile:
    def test_round_trip(self, tmp_path):
        path = tmp_path / "profile.json"
        path.write_text(
            json.dumps(_profile_data(section_strategy="flat", delay_seconds=2)),
            encoding="utf-8",
        )
        profile = load_profile_file(str(path))
        assert profile.name == "custom"
        assert profile.section_strategy == "flat"
        assert profile.delay_seconds == 2.0

    def test_missing_file(self, tmp_path):
        with pytest.raises(FileNotFoundError):
            load_profile_file(str(tmp_path / "nope.json"))

    def test_invalid_json(self, tmp_path):
        path = tmp_path / "broken.json"
        path.write_text("{not json", encoding="utf-8")
        with pytest.raises(ValueError, match="Invalid profile JSON"):
            load_profile_file(str(path))


class TestFetchSettings:
    def test_as_headers(self):
        settings = FetchSettings(user_agent="ua", headers={"Accept-Language": "en"})
        headers = settings.as_headers({"Accept": "text/plain"})
        assert headers["User-Agent"] == "ua"
        assert headers["Accept-Language"] == "en"
        assert headers["Accept"] == "text/plain"

    def test_from_dict_defaults(self):
        settings = FetchSettings.from_dict({})
        assert settings.user_agent == DEFAULT_USER_AGENT
        assert settings.timeout_seconds == DEFAULT_TIMEOUT_SECONDS

    def test_env_overrides(self, monkeypatch):
        monkeypatch.setenv("JEPCRAWL_USER_AGENT", "env-agent/2.0")
        monkeypatch.setenv("JEPCRAWL_TIMEOUT", "12.5")
        settings = fetch_settings_from_env(FetchSettings())
        assert settings.user_agent == "env-agent/2.0"
        assert settings.timeout_seconds == 12.5

    def test_invalid_env_timeout_ignored(self, monkeypatch):
        monkeypatch.delenv("JEPCRAWL_USER_AGENT", raising=False)
        monkeypatch.setenv("JEPCRAWL_TIMEOUT", "soon")
        settings = fetch_settings_from_env(FetchSettings(timeout_seconds=7))
        assert settings.timeout_seconds == 7
        assert settings.user_agent == DEFAULT_USER_AGENT

    def test_no_env(self, monkeypatch):
        monkeypatch.delenv("JEPCRAWL_USER_AGENT", raising=False)
        monkeypatch.delenv("JEPCRAWL_TIMEOUT", raising=False)
        assert fetch_settings_from_env() == FetchSettings()


class TestRenderRunConfig:
    def test_defaults(self):
        config = build_render_run_config(timeout_seconds=15)
        assert config.cache_mode == CacheMode.BYPASS
        assert config.page_timeout == 15000
        assert config.wait_until == "networkidle"

    def test_cache_mode_override(self):
        config = build_render_run_config(cache_mode="enabled")
        assert config.cache_mode == CacheMode.ENABLED


class TestConvertCacheMode:
    def test_none_uses_default(self):
        assert _convert_cache_mode(None, CacheMode.BYPASS) == CacheMode.BYPASS

    def test_enum_name(self):
        assert _convert_cache_mode("CacheMode.DISABLED", CacheMode.BYPASS) == CacheMode.DISABLED

    def test_value(self):
        assert _convert_cache_mode("read_only", CacheMode.BYPASS) == CacheMode.READ_ONLY

    def test_unknown(self):
        assert _convert_cache_mode("sometimes", CacheMode.BYPASS) == CacheMode.BYPASS
