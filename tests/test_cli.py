"""Tests for the voicerelay command line."""

import sys

import pytest
import yaml
from loguru import logger

from voicerelay import cli
from voicerelay.config import DEFAULT_CONFIG_YAML

ENV = {
    "OPENAI_API_KEY": "sk-env",
    "SYSTEM_MESSAGE": "Be helpful.",
    "GREETINGS_RESPONSE": "Hi!",
    "WEBHOOK_URL": "https://hooks.example.com/schedule",
}


@pytest.fixture(autouse=True)
def restore_logger():
    # `run` replaces the loguru handlers
    yield
    logger.remove()
    logger.add(sys.stderr)


@pytest.fixture
def served(monkeypatch):
    calls = []
    monkeypatch.setattr("voicerelay.server.run_server", calls.append)
    return calls


@pytest.fixture
def env(monkeypatch, tmp_path):
    monkeypatch.chdir(tmp_path)
    for name, value in ENV.items():
        monkeypatch.setenv(name, value)
    for name in ("PORT", "HOST", "OPENAI_VOICE", "OPENAI_REALTIME_MODEL", "LOG_LEVEL"):
        monkeypatch.delenv(name, raising=False)


class TestInit:

    def test_writes_template(self, tmp_path, capsys):
        output = tmp_path / "relay.yaml"
        cli.main(["init", "--output", str(output)])
        assert output.read_text() == DEFAULT_CONFIG_YAML
        assert "Configuration written to" in capsys.readouterr().out

    def test_refuses_to_overwrite(self, tmp_path):
        output = tmp_path / "relay.yaml"
        output.write_text("keep me")
        with pytest.raises(SystemExit) as exc_info:
            cli.main(["init", "--output", str(output)])
        assert exc_info.value.code == 1
        assert output.read_text() == "keep me"

    def test_force_overwrites(self, tmp_path):
        output = tmp_path / "relay.yaml"
        output.write_text("old")
        cli.main(["init", "--output", str(output), "--force"])
        assert output.read_text() == DEFAULT_CONFIG_YAML


class TestRun:

    def test_from_env_with_default_port(self, env, served):
        cli.main(["run"])
        (config,) = served
        assert config.port == 1313
        assert config.openai_api_key == "sk-env"

    def test_port_and_host_flags(self, env, served, monkeypatch):
        monkeypatch.setenv("PORT", "5050")
        cli.main(["run", "--port", "6060", "--host", "127.0.0.1"])
        (config,) = served
        assert config.port == 6060
        assert config.host == "127.0.0.1"

    def test_missing_env_exits(self, monkeypatch, tmp_path, served):
        monkeypatch.chdir(tmp_path)
        for name in (*ENV, "PORT"):
            monkeypatch.delenv(name, raising=False)
        with pytest.raises(SystemExit) as exc_info:
            cli.main(["run"])
        assert exc_info.value.code == 1
        assert served == []

    def test_invalid_port_exits(self, env, served, monkeypatch):
        monkeypatch.setenv("PORT", "abc")
        with pytest.raises(SystemExit):
            cli.main(["run"])
        assert served == []

    def test_from_config_file(self, tmp_path, served):
        path = tmp_path / "relay.yaml"
        path.write_text(yaml.safe_dump({
            "openai_api_key": "sk-file",
            "system_message": "Be brief.",
            "port": 7070,
            "greeting": "Hello!",
            "webhook_url": "https://hooks.example.com/schedule",
            "voice": "verse",
        }))
        cli.main(["run", "--config", str(path)])
        (config,) = served
        assert config.port == 7070
        assert config.realtime.voice == "verse"

    def test_missing_config_file_exits(self, tmp_path, served):
        with pytest.raises(SystemExit):
            cli.main(["run", "--config", str(tmp_path / "missing.yaml")])
        assert served == []


def test_no_command_prints_help(capsys):
    cli.main([])
    assert "usage: voicerelay" in capsys.readouterr().out
