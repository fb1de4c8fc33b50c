"""Unit tests for environment-driven settings."""

from dataclasses import fields

from config.settings import Settings


def test_reads_environment(monkeypatch):
    monkeypatch.setenv("USE_FIREBASE_EMULATORS", "TRUE")
    monkeypatch.setenv("STORAGE_BUCKET", "costscan.appspot.com")
    monkeypatch.setenv("LLM_MAX_TOKENS", "2000")
    monkeypatch.setenv("DEFAULT_COUNTRY", "DE")

    settings = Settings()

    assert settings.is_emulator_mode
    assert settings.storage_bucket == "costscan.appspot.com"
    assert settings.llm_max_tokens == 2000
    assert settings.default_country == "DE"


def test_firebase_settings_are_the_ones_in_use():
    names = {f.name for f in fields(Settings)}
    assert {n for n in names if "fire" in n or "storage" in n} == {"use_firebase_emulators", "storage_bucket"}
