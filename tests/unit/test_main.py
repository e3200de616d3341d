import json

from health_agent import __main__ as cli


def _write_config(tmp_path, payload):
    path = tmp_path / "agent.json"
    path.write_text(json.dumps(payload))
    return path


def test_check_config_reports_targets(tmp_path, capsys):
    path = _write_config(
        tmp_path,
        {"config_version": 1, "targets": [{"name": "db", "kind": "tcp", "host": "db", "port": 5432}]},
    )

    exit_code = cli.main(["--config", str(path), "--check-config"])

    assert exit_code == 0
    assert "Configuration OK: 1 target(s)" in capsys.readouterr().out


def test_invalid_config_exits_with_two(tmp_path, capsys):
    path = _write_config(tmp_path, {"config_version": 99})

    exit_code = cli.main(["--config", str(path)])

    assert exit_code == 2
    assert "Unsupported config_version" in capsys.readouterr().err


def test_runs_agent_until_shutdown(tmp_path, monkeypatch):
    path = _write_config(tmp_path, {"config_version": 1})
    calls = {}

    def fake_run(main, *, service_name, configure_logging):
        calls.update(main=main, service_name=service_name, configure_logging=configure_logging)

    monkeypatch.setattr(cli, "run_async_service", fake_run)
    monkeypatch.setattr(cli, "setup_logging", lambda *args, **kwargs: None)

    exit_code = cli.main(["--config", str(path)])

    assert exit_code == 0
    assert calls["service_name"] == "health-agent"
    assert calls["configure_logging"] is False
    assert calls["main"].__self__.config.service_name == "health-agent"
