"""Tests for the click CLI (init / show-config / serve)."""

from __future__ import annotations

from pathlib import Path

from click.testing import CliRunner

from skill_relay.__main__ import main
from skill_relay.config import load_config


class TestInitCommand:
    def test_init_generates_api_key(self, tmp_path: Path):
        runner = CliRunner()
        config_path = tmp_path / "config.yaml"

        result = runner.invoke(main, ["init", "--config", str(config_path)])

        assert result.exit_code == 0
        assert config_path.exists()
        cfg = load_config(config_path)
        # token_urlsafe(32) usually yields >= 43 chars
        assert len(cfg.auth.api_key) >= 43

    def test_init_prints_masked_key(self, monkeypatch, tmp_path: Path):
        runner = CliRunner()
        config_path = tmp_path / "config.yaml"
        monkeypatch.setattr(
            "secrets.token_urlsafe",
            lambda _: "tok_abcdefghijklmnopqrstuvwxyz_0123456789",
        )

        result = runner.invoke(main, ["init", "--config", str(config_path)])

        assert result.exit_code == 0
        assert "API key generated: tok_ab...6789" in result.output
        assert "tok_abcdefghijklmnopqrstuvwxyz_0123456789" not in result.output

    def test_init_refuses_overwrite(self, tmp_path: Path):
        runner = CliRunner()
        config_path = tmp_path / "config.yaml"
        config_path.write_text("server:\n  port: 1234\n")

        result = runner.invoke(main, ["init", "--config", str(config_path)])

        assert result.exit_code != 0
        assert "already exists" in result.output
        assert load_config(config_path).server.port == 1234

    def test_init_force_overwrites(self, tmp_path: Path):
        runner = CliRunner()
        config_path = tmp_path / "config.yaml"
        config_path.write_text("server:\n  port: 1234\n")

        result = runner.invoke(main, ["init", "--config", str(config_path), "--force"])

        assert result.exit_code == 0
        assert load_config(config_path).server.port == 3000


class TestShowConfig:
    def test_masks_api_key(self, tmp_path: Path):
        config_path = tmp_path / "config.yaml"
        config_path.write_text("auth:\n  api_key: supersecretvalue123\n")

        result = CliRunner().invoke(main, ["show-config", "--config", str(config_path)])

        assert result.exit_code == 0
        assert "supersecretvalue123" not in result.output
        assert "supers...e123" in result.output

    def test_invalid_config_reports_error(self, tmp_path: Path):
        config_path = tmp_path / "config.yaml"
        config_path.write_text("server:\n  port: -1\n")

        result = CliRunner().invoke(main, ["show-config", "--config", str(config_path)])

        assert result.exit_code != 0
        assert "Invalid config file" in result.output


class TestServe:
    def test_runs_app_with_overrides(self, monkeypatch, tmp_path: Path):
        captured = {}

        def fake_run_app(app, host, port, print):
            captured["host"] = host
            captured["port"] = port

        monkeypatch.setattr("aiohttp.web.run_app", fake_run_app)
        monkeypatch.setattr(
            "skill_relay.__main__._configure_logging", lambda settings: None
        )
        config_path = tmp_path / "config.yaml"
        config_path.write_text("server:\n  port: 4000\n")

        result = CliRunner().invoke(
            main, ["--config", str(config_path), "--port", "5050", "--host", "127.0.0.1"]
        )

        assert result.exit_code == 0
        assert captured == {"host": "127.0.0.1", "port": 5050}
