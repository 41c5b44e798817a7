import pytest

from src.config import HOUR_MS, MINUTE_MS, SyncConfig, load_config


def test_defaults():
    cfg = SyncConfig()
    assert cfg.poll_interval_ms == 30_000
    assert cfg.default_stale_ms == 5 * MINUTE_MS
    assert cfg.gc_after_ms == 10 * MINUTE_MS
    assert cfg.detail_stale_ms == 24 * HOUR_MS
    assert cfg.availability_stale_ms == 0
    assert cfg.detail_preview_size == 4
    assert cfg.booking_preview_size == 8


def test_empty_environment_gives_defaults():
    assert load_config({}) == SyncConfig()


def test_environment_overrides():
    cfg = load_config({
        "DINE_API_URL": "https://api.example.com/processing/",
        "DINE_API_KEY": "secret/",
        "DINE_POLL_INTERVAL_MS": "15000",
        "DINE_REQUEST_TIMEOUT_S": "2.5",
    })
    assert cfg.processing_base_url == "https://api.example.com/processing"
    assert cfg.api_key == "secret/"
    assert cfg.poll_interval_ms == 15_000
    assert cfg.request_timeout_s == 2.5


def test_blank_values_ignored():
    assert load_config({"DINE_POLL_INTERVAL_MS": ""}).poll_interval_ms == 30_000


def test_unparseable_value_rejected():
    with pytest.raises(ValueError, match="DINE_POLL_INTERVAL_MS"):
        load_config({"DINE_POLL_INTERVAL_MS": "soon"})


@pytest.mark.parametrize(
    "overrides",
    [
        {"poll_interval_ms": 0},
        {"default_stale_ms": -1},
        {"booking_preview_size": 0},
    ],
)
def test_out_of_range_rejected(overrides):
    with pytest.raises(ValueError):
        SyncConfig(**overrides)
