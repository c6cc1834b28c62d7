import json
from datetime import date

import pytest

import pharmadesk.main as cli
from conftest import FakeHttp, summary_row
from pharmadesk.application.container import build_container
from pharmadesk.config import ApiSettings, get_app_paths
from pharmadesk.services.layout_persistence import LAYOUT_KEY, LocalLayoutPersistence, ServerLayoutPersistence


@pytest.fixture(autouse=True)
def clean_env(monkeypatch):
    for name in ("PHARMADESK_API_URL", "PHARMADESK_API_TIMEOUT", "PHARMADESK_LAYOUT_MODE", "PHARMADESK_AGENT_PORTS"):
        monkeypatch.delenv(name, raising=False)


def test_get_app_paths_creates_folders(tmp_path):
    paths = get_app_paths(base=tmp_path / "home")

    assert paths.logs_dir.is_dir()
    assert paths.receipts_dir.is_dir()
    assert paths.db_path.name == "pharmadesk.db"


def test_build_container_wires_local_layout_by_default(tmp_path):
    c = build_container(get_app_paths(base=tmp_path), http_session=FakeHttp())
    try:
        assert isinstance(c.layout.persistence, LocalLayoutPersistence)
        assert c.repo.integrity_check() == "ok"
        c.layout.update_value("scale", 2)
        assert json.loads(c.repo.get_value(LAYOUT_KEY))["scale"] == 2
    finally:
        c.shutdown()
    assert c.api.http.closed


def test_build_container_server_mode(tmp_path):
    settings = ApiSettings(layout_mode="server")
    c = build_container(get_app_paths(base=tmp_path), settings=settings, http_session=FakeHttp())

    assert isinstance(c.layout.persistence, ServerLayoutPersistence)
    assert c.layout.config.scale == 3
    c.shutdown()


def test_cli_layout_preset_set_and_export(tmp_path, capsys):
    home = str(tmp_path)

    assert cli.main(["--home", home, "layout", "preset", "compact"]) == 0
    assert cli.main(["--home", home, "layout", "set", "fontSizes.normal", "25"]) == 0
    assert "fontSizes.normal = 25" in capsys.readouterr().out

    assert cli.main(["--home", home, "layout", "export"]) == 0
    exported = json.loads(capsys.readouterr().out)
    assert exported["scale"] == 2
    assert exported["fontSizes"]["normal"] == 25

    assert cli.main(["--home", home, "layout", "reset"]) == 0
    capsys.readouterr()
    assert cli.main(["--home", home, "layout", "export"]) == 0
    assert json.loads(capsys.readouterr().out)["scale"] == 3


def test_cli_layout_import(tmp_path, capsys):
    good = tmp_path / "layout.json"
    good.write_text(json.dumps({"paperWidth": 384}), encoding="utf-8")
    bad = tmp_path / "bad.json"
    bad.write_text("{oops", encoding="utf-8")
    home = str(tmp_path / "home")

    assert cli.main(["--home", home, "layout", "import", str(good)]) == 0
    with pytest.raises(SystemExit):
        cli.main(["--home", home, "layout", "import", str(bad)])

    capsys.readouterr()
    cli.main(["--home", home, "layout", "export"])
    assert json.loads(capsys.readouterr().out)["paperWidth"] == 384


def test_cli_reports_app_errors(tmp_path, capsys):
    assert cli.main(["--home", str(tmp_path), "layout", "preset", "tiny"]) == 1
    assert "Unknown print layout preset" in capsys.readouterr().err

    assert cli.main(["--home", str(tmp_path), "layout", "set", "fontSizes.huge", "3"]) == 1


def test_cli_income_prints_current_period(monkeypatch, tmp_path, capsys):
    today = date.today().isoformat()
    http = FakeHttp(
        {
            ("GET", "/income/summary"): (
                200,
                {"summaries": [summary_row("Alice", today, 1200, sales=3000, items=4), summary_row("Bob", today, 300)]},
            )
        }
    )
    real_build = cli.build_container
    monkeypatch.setattr(cli, "build_container", lambda paths: real_build(paths, http_session=http))
    out_file = tmp_path / "income.xlsx"

    assert cli.main(["--home", str(tmp_path), "income", "--period", "daily", "--excel", str(out_file)]) == 0

    out = capsys.readouterr().out
    assert "Today: income 1500 Ks" in out
    assert "Alice: 1200 Ks" in out
    assert out_file.exists()
    assert http.calls[-1]["params"] == {"period": "daily"}
    assert http.closed


def test_cli_income_fetch_failure_exits_with_error(monkeypatch, tmp_path, capsys):
    http = FakeHttp({("GET", "/income/summary"): (500, {"error": "db down"})})
    real_build = cli.build_container
    monkeypatch.setattr(cli, "build_container", lambda paths: real_build(paths, http_session=http))

    assert cli.main(["--home", str(tmp_path), "income"]) == 1
    assert "db down" in capsys.readouterr().err


@pytest.mark.parametrize(
    "name, value",
    [("PHARMADESK_LAYOUT_MODE", "cloud"), ("PHARMADESK_API_TIMEOUT", "soon"), ("PHARMADESK_AGENT_PORTS", "a,b")],
)
def test_cli_bad_environment_exits_with_error(monkeypatch, tmp_path, capsys, name, value):
    monkeypatch.setenv(name, value)

    assert cli.main(["--home", str(tmp_path), "layout", "show"]) == 1
    assert name in capsys.readouterr().err


def test_shutdown_closes_printer_sessions(monkeypatch, tmp_path):
    c = build_container(get_app_paths(base=tmp_path), http_session=FakeHttp())
    agent = c.printer.printers[0]
    closed = []
    monkeypatch.setattr(agent.http, "close", lambda: closed.append(agent.name))

    c.shutdown()

    assert closed == ["agent"]
    assert c.api.http.closed
