from __future__ import annotations

import json
from pathlib import Path

import pytest

from incidentrag import cli
from incidentrag.services.incidents import IncidentService


def test_parse_search_filters() -> None:
    args = cli.parse_args(["search", "bomba", "--severity", "high", "--severity", "critical", "--tag", "PLC"])

    assert args.command == "search"
    assert args.query == "bomba"
    assert args.severity == ["high", "critical"]
    assert args.tag == ["PLC"]
    assert args.limit is None


def test_ingest_folder_then_stats(
    tmp_path: Path,
    monkeypatch: pytest.MonkeyPatch,
    capsys: pytest.CaptureFixture[str],
    incident_service: IncidentService,
    report_text: str,
) -> None:
    folder = tmp_path / "actas"
    folder.mkdir()
    (folder / "AC2405.txt").write_text(report_text, encoding="utf-8")
    monkeypatch.setattr(cli, "build_incident_service", lambda settings: incident_service)

    assert cli.main(["ingest", str(folder)]) == 0
    assert "ok\tAC2405" in capsys.readouterr().out

    assert cli.main(["stats"]) == 0
    stats = json.loads(capsys.readouterr().out)
    assert stats["total_incidents"] == 1
    assert stats["total_hours"] == 21
