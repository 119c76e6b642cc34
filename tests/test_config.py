"""Tests for web and CLI configuration loading."""

from __future__ import annotations

from pathlib import Path

import jwt
import pytest
import yaml

from goalgrid.cli.config import CliConfig
from goalgrid.web.auth import service as auth_service
from goalgrid.web.config import WebConfig


class TestWebConfig:
    def test_defaults(self, monkeypatch):
        for name in ("GOALGRID_DB_PATH", "GOALGRID_JWT_SECRET", "GOALGRID_JWT_EXPIRE_HOURS"):
            monkeypatch.delenv(name, raising=False)
        config = WebConfig.load()
        assert config.jwt_expire_hours == 24
        assert config.db_path == ".goalgrid/cards.db"
        assert config.cors_origins is None
        assert len(config.jwt_secret) == 64

    def test_ephemeral_secret_differs_per_load(self, monkeypatch):
        monkeypatch.delenv("GOALGRID_JWT_SECRET", raising=False)
        assert WebConfig.load().jwt_secret != WebConfig.load().jwt_secret

    def test_env_overrides(self, monkeypatch):
        monkeypatch.setenv("GOALGRID_JWT_EXPIRE_HOURS", "2")
        monkeypatch.setenv("GOALGRID_DB_PATH", "/tmp/x.db")
        monkeypatch.setenv("GOALGRID_JWT_SECRET", "s3cret")
        monkeypatch.setenv("GOALGRID_CORS_ORIGINS", "http://a.test, http://b.test")
        monkeypatch.setenv("GOALGRID_DEBUG", "true")
        config = WebConfig.load()
        assert config.jwt_expire_hours == 2
        assert config.db_path == "/tmp/x.db"
        assert config.jwt_secret == "s3cret"
        assert config.cors_origins == ["http://a.test", "http://b.test"]
        assert config.debug is True


class TestTokens:
    def test_round_trip(self):
        auth_service.init_auth(WebConfig(jwt_secret="k"))
        payload = auth_service.decode_token(auth_service.create_token("alice"))
        assert payload["sub"] == "alice"
        assert payload["username"] == "alice"

    def test_wrong_secret_rejected(self):
        auth_service.init_auth(WebConfig(jwt_secret="one"))
        token = auth_service.create_token("alice")
        auth_service.init_auth(WebConfig(jwt_secret="two"))
        with pytest.raises(jwt.InvalidTokenError):
            auth_service.decode_token(token)


class TestCliConfig:
    def test_defaults(self, tmp_path, monkeypatch):
        for name in ("GOALGRID_DRAFT_PATH", "GOALGRID_DB_PATH", "GOALGRID_OWNER"):
            monkeypatch.delenv(name, raising=False)
        config = CliConfig.load(config_path=tmp_path / "missing.yaml")
        assert config.draft_path == Path.home() / ".goalgrid" / "draft.json"
        assert config.owner == ""

    def test_load_from_yaml_file(self, tmp_path, monkeypatch):
        monkeypatch.delenv("GOALGRID_OWNER", raising=False)
        monkeypatch.delenv("GOALGRID_DRAFT_PATH", raising=False)
        config_file = tmp_path / "config.yaml"
        config_file.write_text(
            yaml.safe_dump({"draft_path": str(tmp_path / "d.json"), "owner": "alice"})
        )
        config = CliConfig.load(config_path=config_file)
        assert config.draft_path == tmp_path / "d.json"
        assert config.owner == "alice"

    def test_env_vars_override_file(self, tmp_path, monkeypatch):
        config_file = tmp_path / "config.yaml"
        config_file.write_text(yaml.safe_dump({"owner": "from-file"}))
        monkeypatch.setenv("GOALGRID_OWNER", "from-env")
        monkeypatch.setenv("GOALGRID_DB_PATH", str(tmp_path / "env.db"))
        config = CliConfig.load(config_path=config_file)
        assert config.owner == "from-env"
        assert config.db_path == tmp_path / "env.db"

    def test_malformed_yaml_uses_defaults(self, tmp_path, monkeypatch):
        monkeypatch.delenv("GOALGRID_OWNER", raising=False)
        config_file = tmp_path / "config.yaml"
        config_file.write_text("this is: not: valid: yaml: [[[")
        assert CliConfig.load(config_path=config_file).owner == ""

    def test_save_and_reload(self, tmp_path, monkeypatch):
        monkeypatch.delenv("GOALGRID_OWNER", raising=False)
        monkeypatch.delenv("GOALGRID_DRAFT_PATH", raising=False)
        monkeypatch.delenv("GOALGRID_DB_PATH", raising=False)
        path = tmp_path / "sub" / "config.yaml"
        CliConfig(owner="bob", draft_path=tmp_path / "draft.json").save(path)
        loaded = CliConfig.load(config_path=path)
        assert loaded.owner == "bob"
        assert loaded.draft_path == tmp_path / "draft.json"
