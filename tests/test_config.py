from deckforge.config import Settings, load_settings


def test_load_settings_from_environment(monkeypatch):
    monkeypatch.setenv("OPENAI_API_KEY", ' "sk-abc123" \n')
    monkeypatch.setenv("DECKFORGE_MODEL", "gpt-test")
    monkeypatch.setenv("DECKFORGE_STYLE", "dark-corporate")
    monkeypatch.setenv("DECKFORGE_MAX_UPLOAD_MB", "5")
    monkeypatch.setenv("DECKFORGE_DECODE_WORKERS", "8")
    monkeypatch.setenv("DECKFORGE_MAX_RETRIES", "1")
    monkeypatch.setenv("DECKFORGE_LOG_LEVEL", "debug")

    settings = load_settings()
    assert settings.openai_api_key == "sk-abc123"
    assert settings.model == "gpt-test"
    assert settings.style_preset == "dark-corporate"
    assert settings.max_upload_bytes == 5 * 1024 * 1024
    assert settings.decode_workers == 8
    assert settings.max_retries == 1
    assert settings.log_level == "DEBUG"


def test_defaults(monkeypatch):
    for name in ["DECKFORGE_MODEL", "DECKFORGE_STYLE", "DECKFORGE_MAX_UPLOAD_MB", "DECKFORGE_MAX_RETRIES"]:
        monkeypatch.delenv(name, raising=False)
    settings = load_settings()
    assert settings.model == "gpt-4o-2024-08-06"
    assert settings.style_preset == "mckinsey"
    assert settings.max_upload_bytes == Settings().max_upload_bytes == 10 * 1024 * 1024
    assert settings.max_retries == 2
