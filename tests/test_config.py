import pytest
from pydantic import ValidationError

from flipcap.config import DEFAULT_MINT, Settings, load_settings, parse_provider_roster


def test_defaults_without_environment():
    settings = load_settings({})
    assert settings.subject == DEFAULT_MINT
    assert settings.cache_ttl == 12.0
    assert settings.cache_ttl_wide == 60.0
    assert settings.upstream_timeout == 8.0
    assert settings.pacer_min_interval == 1.0
    assert settings.pacer_max_backoff == 2.0
    assert settings.birdeye_api_key is None
    assert settings.providers == []


def test_millisecond_values_are_converted():
    settings = load_settings(
        {
            "CACHE_TTL_MS": "5000",
            "CACHE_TTL_WIDE_MS": "30000",
            "UPSTREAM_TIMEOUT_MS": "2500",
            "PACER_MIN_INTERVAL_MS": "250",
            "PACER_MAX_BACKOFF_MS": "4000",
        }
    )
    assert settings.cache_ttl == 5.0
    assert settings.cache_ttl_wide == 30.0
    assert settings.upstream_timeout == 2.5
    assert settings.pacer_min_interval == 0.25
    assert settings.pacer_max_backoff == 4.0


def test_non_numeric_values_fall_back_with_warning(caplog):
    with caplog.at_level("WARNING"):
        settings = load_settings({"CACHE_TTL_MS": "soon", "CACHE_UNCHANGED_THRESHOLD": "many"})
    assert settings.cache_ttl == 12.0
    assert settings.unchanged_threshold == 3
    assert "CACHE_TTL_MS" in caplog.text


def test_subject_and_urls_are_normalised():
    settings = load_settings(
        {
            "FLIP_MINT": "  Mint123  ",
            "BIRDEYE_BASE_URL": "https://birdeye.test/",
            "DEXSCREENER_BASE_URL": "https://dex.test//",
        }
    )
    assert settings.subject == "Mint123"
    assert settings.birdeye_base_url == "https://birdeye.test"
    assert settings.dexscreener_base_url == "https://dex.test"


@pytest.mark.parametrize("raw", ["", "  ", "your_birdeye_key", "EXAMPLE-KEY"])
def test_placeholder_api_keys_are_ignored(raw):
    assert load_settings({"BIRDEYE_API_KEY": raw}).birdeye_api_key is None


def test_real_api_key_is_kept():
    assert load_settings({"BIRDEYE_API_KEY": " abc123 "}).birdeye_api_key == "abc123"


def test_provider_roster_parsing():
    assert parse_provider_roster("Dexscreener; birdeye_overview,,dexscreener") == [
        "dexscreener",
        "birdeye_overview",
    ]
    assert parse_provider_roster(None) == []
    assert load_settings({"MCAP_PROVIDERS": "dexscreener"}).providers == ["dexscreener"]


@pytest.mark.parametrize(
    "overrides",
    [
        {"subject": ""},
        {"cache_ttl": 0},
        {"upstream_timeout": -1},
        {"pacer_min_interval": -0.5},
        {"pacer_max_backoff": 0},
        {"unchanged_threshold": -1},
        {"cache_ttl": 30, "cache_ttl_wide": 10},
    ],
)
def test_invalid_settings_rejected(overrides):
    with pytest.raises(ValidationError):
        Settings(**overrides)


def test_zero_min_interval_allowed():
    assert Settings(pacer_min_interval=0).pacer_min_interval == 0


@pytest.mark.parametrize(
    "name",
    ["PACER_MIN_INTERVAL_MS", "CACHE_TTL_MS", "UPSTREAM_TIMEOUT_MS", "PACER_MAX_BACKOFF_MS"],
)
@pytest.mark.parametrize("raw", ["nan", "inf", "-inf"])
def test_non_finite_durations_rejected(name, raw):
    with pytest.raises(ValidationError):
        load_settings({name: raw})
