"""
Tests for Settings
"""
from secureproctor.config import Settings
from secureproctor.proctor.scoring import IntegrityScorer


def test_defaults():
    settings = Settings(_env_file=None)

    assert settings.SESSION_STORE == "memory"
    assert settings.INGEST_TIMEOUT_SECONDS < settings.SAMPLING_INTERVAL_SECONDS
    assert settings.severity_weights == {"high": 10, "medium": 5, "low": 2}


def test_environment_overrides(monkeypatch):
    monkeypatch.setenv("SESSION_STORE", "redis")
    monkeypatch.setenv("SEVERITY_WEIGHT_HIGH", "15")

    settings = Settings(_env_file=None)

    assert settings.SESSION_STORE == "redis"
    assert IntegrityScorer(settings.severity_weights).penalty("high") == 15
