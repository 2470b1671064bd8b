from __future__ import annotations

import pytest
import yaml

from backend.app.config import AppConfig, ConfigError, load_config


def test_config_loads_expected_structure() -> None:
    config = load_config()
    assert isinstance(config, AppConfig)
    assert config.service.name == "account-merge-engine"
    assert config.service.version == "1.0.0"
    assert config.database.url.startswith("sqlite+aiosqlite://")
    assert config.auth.jwt.algorithm == "HS256"
    assert config.auth.jwt.access_token_ttl.total_seconds() == 3600
    assert config.auth.merge_role == "super_admin"
    assert config.ranking.client.contacts == 1
    assert config.ranking.client.funds == 2
    assert config.ranking.client.posts == 1
    assert config.ranking.business.products == 2
    assert config.ranking.business.orders == 1
    assert config.dedupe.phone_key_length == 8
    assert config.dedupe.min_business_name_length == 3
    assert config.dedupe.business_name_only_confidence == "medium"
    assert config.merge.claim_secondary is True
    assert config.merge.merged_note_prefix == "[MERGED]"
    assert "http://localhost:3000" in config.cors.allowed_origins


def test_config_strict_fields_match_yaml() -> None:
    config_path = AppConfig.default_path()
    with config_path.open("r", encoding="utf-8") as handle:
        raw = yaml.safe_load(handle)
    config = load_config()
    assert raw["service"]["version"] == config.service.version
    assert raw["ranking"]["client"]["funds"] == config.ranking.client.funds
    assert raw["ranking"]["business"]["products"] == config.ranking.business.products
    assert raw["dedupe"]["phone_key_length"] == config.dedupe.phone_key_length
    assert raw["merge"]["merged_note_prefix"] == config.merge.merged_note_prefix


def test_database_url_override_from_env(monkeypatch, tmp_path) -> None:
    load_config.cache_clear()
    monkeypatch.setenv("MERGE_ENGINE_ENV_FILE", str(tmp_path / "missing.env"))
    monkeypatch.setenv("MERGE_ENGINE_DATABASE_URL", "sqlite+aiosqlite:///override.db")
    try:
        config = load_config()
        assert config.database.url == "sqlite+aiosqlite:///override.db"
    finally:
        load_config.cache_clear()


def test_jwt_secret_loaded_from_env_file(monkeypatch, tmp_path) -> None:
    load_config.cache_clear()
    secret = "secret-from-env-file-" + "x" * 24
    env_file = tmp_path / ".env"
    env_file.write_text(
        f"# Sample .env file\nexport MERGE_ENGINE_JWT_SECRET='{secret}'\n",
        encoding="utf-8",
    )
    monkeypatch.delenv("MERGE_ENGINE_JWT_SECRET", raising=False)
    monkeypatch.setenv("MERGE_ENGINE_ENV_FILE", str(env_file))
    try:
        config = load_config()
        assert config.auth.jwt.secret_key == secret
    finally:
        load_config.cache_clear()
        monkeypatch.delenv("MERGE_ENGINE_JWT_SECRET", raising=False)


def test_short_jwt_secret_rejected(monkeypatch, tmp_path) -> None:
    load_config.cache_clear()
    monkeypatch.setenv("MERGE_ENGINE_ENV_FILE", str(tmp_path / "missing.env"))
    monkeypatch.setenv("MERGE_ENGINE_JWT_SECRET", "too-short")
    try:
        with pytest.raises(ConfigError):
            load_config()
    finally:
        load_config.cache_clear()


def test_missing_config_file_raises(tmp_path) -> None:
    with pytest.raises(ConfigError):
        load_config(tmp_path / "absent.yaml")


def test_non_mapping_config_rejected(tmp_path) -> None:
    path = tmp_path / "config.yaml"
    path.write_text("- just\n- a list\n", encoding="utf-8")
    with pytest.raises(ConfigError):
        load_config(path)
