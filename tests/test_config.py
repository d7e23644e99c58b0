import textwrap

import pytest

from sumosync.core.config import ConfigError, load_config


@pytest.fixture(autouse=True)
def _clean_env(monkeypatch):
    import os
    for key in list(os.environ):
        if key.startswith("SUMOSYNC_"):
            monkeypatch.delenv(key, raising=False)


def _load(tmp_path, overrides=None, text="{}"):
    cfg_file = tmp_path / "sumosync.yml"
    cfg_file.write_text(textwrap.dedent(text), encoding="utf-8")
    return load_config(overrides, files=(str(cfg_file),), use_dotenv=False)


def test_defaults_when_disabled(tmp_path):
    cfg = _load(tmp_path, {"app": {"disabled": True}})
    assert cfg.sumo.api_url == "https://api.sumologic.com/api/v1"
    assert cfg.sumo.timeout_sec == 60
    assert cfg.sumo.collector_query_limit == 1000
    assert cfg.collector.name  # host name
    assert cfg.logging.console_level == "INFO"
    rid1 = cfg.run_id
    assert isinstance(rid1, str) and len(rid1) >= 8
    assert cfg.run_id == rid1


def test_file_then_env_then_cli_precedence(tmp_path, monkeypatch):
    monkeypatch.setenv("SUMOSYNC_SUMO__TIMEOUT_SEC", "15")
    monkeypatch.setenv("SUMOSYNC_SUMO__VERIFY_TLS", "false")
    monkeypatch.setenv("SUMOSYNC_COLLECTOR__NAME", "env-host")
    cfg = _load(
        tmp_path,
        {"collector": {"name": "cli-host"}, "sumo": {"username": None}},
        """
        sumo:
          username: "file-user"
          password: "file-pass"
          timeout_sec: 30
          collector_query_limit: "250"
        collector:
          name: "file-host"
        logging:
          console_level: "WARNING"
        """,
    )
    assert cfg.collector.name == "cli-host"       # CLI wins
    assert cfg.sumo.username == "file-user"       # None override ignored
    assert cfg.sumo.timeout_sec == 15             # env coerced to int
    assert cfg.sumo.verify_tls is False           # env coerced to bool
    assert cfg.sumo.collector_query_limit == 250  # file coerced to int
    assert cfg.logging.console_level == "WARNING"


def test_env_interpolation(tmp_path, monkeypatch):
    monkeypatch.setenv("SUMO_ACCESS_KEY", "SECRET_123")
    cfg = _load(
        tmp_path,
        None,
        """
        sumo:
          username: "acc"
          password: "${SUMO_ACCESS_KEY}"
        collector:
          name: "web-01"
        """,
    )
    assert cfg.sumo.password == "SECRET_123"


def test_required_credentials(tmp_path):
    with pytest.raises(ConfigError) as ei:
        _load(tmp_path, {"collector": {"name": "web-01"}})
    msg = str(ei.value)
    assert "sumo.username" in msg and "sumo.password" in msg


def test_bad_integer_and_unknown_key(tmp_path):
    with pytest.raises(ConfigError, match="timeout_sec"):
        _load(tmp_path, {"app": {"disabled": True}, "sumo": {"timeout_sec": "soon"}})
    with pytest.raises(ConfigError, match="Unknown configuration key"):
        _load(tmp_path, {"app": {"disabled": True, "colour": "red"}})


def test_dotenv_is_loaded(tmp_path, monkeypatch):
    (tmp_path / ".env").write_text(
        "SUMOSYNC_SUMO__USERNAME=dot-user\nSUMOSYNC_SUMO__PASSWORD=dot-pass\n",
        encoding="utf-8",
    )
    (tmp_path / "sumosync.yml").write_text("collector:\n  name: web-01\n", encoding="utf-8")
    monkeypatch.chdir(tmp_path)
    monkeypatch.delenv("SUMOSYNC_SUMO__USERNAME", raising=False)
    monkeypatch.delenv("SUMOSYNC_SUMO__PASSWORD", raising=False)
    try:
        cfg = load_config(files=(str(tmp_path / "sumosync.yml"),))
        assert cfg.sumo.username == "dot-user"
        assert cfg.sumo.password == "dot-pass"
    finally:
        import os
        os.environ.pop("SUMOSYNC_SUMO__USERNAME", None)
        os.environ.pop("SUMOSYNC_SUMO__PASSWORD", None)
