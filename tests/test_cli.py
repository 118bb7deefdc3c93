"""CLI integration smoke tests for sheet-shaper."""

from __future__ import annotations

import json
from pathlib import Path

import pytest
from openpyxl import load_workbook
from typer.testing import CliRunner

import sheet_shaper.cli as cli_mod
from sheet_shaper import __version__
from sheet_shaper.cli import app

runner = CliRunner()

SCENARIO_CSV = (
    "Date,Amount,Doctor\n"
    "10/01/2024,100,A\n"
    "20/02/2024,200,B\n"
    ",300,C\n"
)


def _write_csv(tmp_path: Path, name: str, rows: str) -> Path:
    path = tmp_path / name
    path.write_text(rows, encoding="utf-8")
    return path


def _read_json(path: Path) -> dict:
    return json.loads(path.read_text(encoding="utf-8"))


def _sheet_rows(path: Path, sheet: str | None = None) -> list[list[object]]:
    wb = load_workbook(path)
    ws = wb[sheet] if sheet else wb.worksheets[0]
    return [list(row) for row in ws.iter_rows(values_only=True)]


def test_version_flag() -> None:
    result = runner.invoke(app, ["--version"])

    assert result.exit_code == 0
    assert __version__ in result.output


def test_inspect_lists_columns_candidates_and_months(tmp_path: Path) -> None:
    csv_path = _write_csv(
        tmp_path,
        "claims.csv",
        "Clinic export,,\n"
        "Claim ID,Service Date,Doctor\n"
        "C1,15/01/2024,A\n"
        "C2,15/01/2023,B\n"
        "C3,03/02/2024,A\n",
    )

    result = runner.invoke(app, ["inspect", "--input", str(csv_path)])

    assert result.exit_code == 0
    assert "Header row: 2" in result.output
    assert "Service Date" in result.output
    assert "January 2023" in result.output
    assert "February 2024" in result.output


def test_inspect_unknown_date_column_exits_2(tmp_path: Path) -> None:
    csv_path = _write_csv(tmp_path, "claims.csv", SCENARIO_CSV)

    result = runner.invoke(
        app, ["inspect", "--input", str(csv_path), "--date-column", "Nope"]
    )

    assert result.exit_code == 2
    assert "not found" in result.output


def test_process_excludes_month_and_writes_artifacts(tmp_path: Path) -> None:
    csv_path = _write_csv(tmp_path, "scenario.csv", SCENARIO_CSV)
    out_dir = tmp_path / "out"

    result = runner.invoke(
        app,
        [
            "process", "--input", str(csv_path), "--out-dir", str(out_dir),
            "--exclude-month", "January 2024", "--quiet",
        ],
    )

    assert result.exit_code == 0
    workbook = out_dir / "without_January_2024_scenario.xlsx"
    rows = _sheet_rows(workbook)
    assert rows[0] == ["Date", "Amount", "Doctor"]
    assert rows[1:] == [["20/02/2024", 200, "B"]]

    report = _read_json(out_dir / "processing_report.json")
    assert report["rows_in"] == 3
    assert report["rows_out"] == 1
    assert report["dropped_rows"] == 2

    manifest = _read_json(out_dir / "run_manifest.json")
    assert manifest["status"] == "success"
    assert manifest["tool"] == "sheet-shaper"
    assert manifest["outputs"] == [str(workbook.resolve())]
    assert len(manifest["sha256"]) == 64


def test_process_orders_adds_and_removes_by_name(tmp_path: Path) -> None:
    csv_path = _write_csv(tmp_path, "scenario.csv", SCENARIO_CSV)
    out_dir = tmp_path / "out"

    result = runner.invoke(
        app,
        [
            "process", "--input", str(csv_path), "--out-dir", str(out_dir),
            "--add", "Reviewer",
            "--order", "Doctor", "--order", "Reviewer", "--order", "Date", "--order", "Amount",
            "--remove", "Amount",
            "--quiet",
        ],
    )

    assert result.exit_code == 0
    rows = _sheet_rows(out_dir / "modified_scenario.xlsx")
    assert rows[0] == ["Doctor", "Reviewer", "Date"]
    assert rows[1] == ["A", None, "10/01/2024"]
    assert len(rows) == 4


def test_process_partial_order_keeps_unlisted_columns(tmp_path: Path) -> None:
    csv_path = _write_csv(tmp_path, "scenario.csv", SCENARIO_CSV)
    out_dir = tmp_path / "out"

    result = runner.invoke(
        app,
        [
            "process", "--input", str(csv_path), "--out-dir", str(out_dir),
            "--order", "doctor", "--quiet",
        ],
    )

    assert result.exit_code == 0
    rows = _sheet_rows(out_dir / "modified_scenario.xlsx")
    assert rows[0] == ["Doctor", "Date", "Amount"]
    assert rows[1] == ["A", "10/01/2024", 100]


def test_process_alphabetical_order_preset(tmp_path: Path) -> None:
    csv_path = _write_csv(tmp_path, "scenario.csv", SCENARIO_CSV)
    out_dir = tmp_path / "out"

    result = runner.invoke(
        app,
        [
            "process", "--input", str(csv_path), "--out-dir", str(out_dir),
            "--add", "Notes", "--order", "Notes", "--order-preset", "alphabetical",
            "--quiet",
        ],
    )

    assert result.exit_code == 0
    rows = _sheet_rows(out_dir / "modified_scenario.xlsx")
    assert rows[0] == ["Notes", "Amount", "Date", "Doctor"]


def test_process_unknown_order_name_is_reported(tmp_path: Path) -> None:
    csv_path = _write_csv(tmp_path, "scenario.csv", SCENARIO_CSV)
    out_dir = tmp_path / "out"

    result = runner.invoke(
        app,
        ["process", "--input", str(csv_path), "--out-dir", str(out_dir), "--order", "Nope"],
    )

    assert result.exit_code == 0
    assert "unknown column 'Nope'" in result.output
    rows = _sheet_rows(out_dir / "modified_scenario.xlsx")
    assert rows[0] == ["Date", "Amount", "Doctor"]


def test_process_remove_matches_headers_case_insensitively(tmp_path: Path) -> None:
    csv_path = _write_csv(tmp_path, "scenario.csv", SCENARIO_CSV)
    out_dir = tmp_path / "out"

    result = runner.invoke(
        app,
        [
            "process", "--input", str(csv_path), "--out-dir", str(out_dir),
            "--remove", "doctor", "--remove", "Ghost", "--quiet",
        ],
    )

    assert result.exit_code == 0
    assert _sheet_rows(out_dir / "modified_scenario.xlsx")[0] == ["Date", "Amount"]
    report = _read_json(out_dir / "processing_report.json")
    assert report["removed_columns"] == ["Doctor"]
    assert report["unmatched_columns"] == ["Ghost"]


def test_process_with_profile(tmp_path: Path) -> None:
    csv_path = _write_csv(tmp_path, "scenario.csv", SCENARIO_CSV)
    profile = tmp_path / "scenario.profile"
    profile.write_text("# drop doctors\nremove=Doctor\n", encoding="utf-8")
    out_dir = tmp_path / "out"

    result = runner.invoke(
        app,
        [
            "process", "--input", str(csv_path), "--out-dir", str(out_dir),
            "--profile", str(profile), "--quiet",
        ],
    )

    assert result.exit_code == 0
    rows = _sheet_rows(out_dir / "modified_scenario.xlsx")
    assert rows[0] == ["Date", "Amount"]


def test_process_bad_profile_writes_failed_manifest(tmp_path: Path) -> None:
    csv_path = _write_csv(tmp_path, "scenario.csv", SCENARIO_CSV)
    profile = tmp_path / "bad.profile"
    profile.write_text("colour=blue\n", encoding="utf-8")
    out_dir = tmp_path / "out"

    result = runner.invoke(
        app,
        [
            "process", "--input", str(csv_path), "--out-dir", str(out_dir),
            "--profile", str(profile), "--quiet",
        ],
    )

    assert result.exit_code == 2
    manifest = _read_json(out_dir / "run_manifest.json")
    assert manifest["status"] == "failed"
    assert "unknown key" in manifest["error_message"]


def test_process_without_selection_exits_2(tmp_path: Path) -> None:
    csv_path = _write_csv(tmp_path, "scenario.csv", SCENARIO_CSV)
    out_dir = tmp_path / "out"

    result = runner.invoke(
        app, ["process", "--input", str(csv_path), "--out-dir", str(out_dir), "--quiet"]
    )

    assert result.exit_code == 2
    manifest = _read_json(out_dir / "run_manifest.json")
    assert manifest["status"] == "failed"
    assert manifest["error_code"] == 2
    assert "Nothing to do" in manifest["error_message"]
    assert not list(out_dir.glob("*.xlsx"))


def test_process_removing_every_row_exits_2(tmp_path: Path) -> None:
    csv_path = _write_csv(
        tmp_path, "one_month.csv", "Date,Amount\n10/01/2024,1\n11/01/2024,2\n"
    )
    out_dir = tmp_path / "out"

    result = runner.invoke(
        app,
        [
            "process", "--input", str(csv_path), "--out-dir", str(out_dir),
            "--exclude-month", "January 2024", "--quiet",
        ],
    )

    assert result.exit_code == 2
    assert "All data rows" in _read_json(out_dir / "run_manifest.json")["error_message"]


def test_process_split_writes_one_sheet_per_month(tmp_path: Path) -> None:
    csv_path = _write_csv(
        tmp_path,
        "visits.csv",
        "Date,Amount\n15/01/2023,1\n15/01/2024,2\n16/01/2024,3\nlater,4\n",
    )
    out_dir = tmp_path / "out"

    result = runner.invoke(
        app,
        [
            "process", "--input", str(csv_path), "--out-dir", str(out_dir),
            "--add", "Notes", "--split", "--quiet",
        ],
    )

    assert result.exit_code == 0
    split_path = out_dir / "separated_by_months_visits.xlsx"
    wb = load_workbook(split_path)
    assert wb.sheetnames == ["January 2023", "January 2024"]
    assert _sheet_rows(split_path, "January 2024")[0] == ["Date", "Amount", "Notes"]
    assert len(_read_json(out_dir / "run_manifest.json")["outputs"]) == 2


def test_process_split_after_removing_date_column_exits_2(tmp_path: Path) -> None:
    csv_path = _write_csv(tmp_path, "scenario.csv", SCENARIO_CSV)
    out_dir = tmp_path / "out"

    result = runner.invoke(
        app,
        [
            "process", "--input", str(csv_path), "--out-dir", str(out_dir),
            "--remove", "Date", "--split",
        ],
    )

    assert result.exit_code == 2
    assert "Cannot split by month" in result.output
    assert (out_dir / "modified_scenario.xlsx").exists()
    assert not (out_dir / "separated_by_months_scenario.xlsx").exists()

    report = _read_json(out_dir / "processing_report.json")
    assert any("Cannot split by month" in w for w in report["warnings"])
    manifest = _read_json(out_dir / "run_manifest.json")
    assert manifest["status"] == "failed"
    assert manifest["error_code"] == 2
    assert len(manifest["outputs"]) == 1


def test_process_month_first_date_order(tmp_path: Path) -> None:
    csv_path = _write_csv(
        tmp_path, "us.csv", "Date,Amount\n02/10/2024,1\n03/10/2024,2\n"
    )
    out_dir = tmp_path / "out"

    result = runner.invoke(
        app,
        [
            "process", "--input", str(csv_path), "--out-dir", str(out_dir),
            "--date-order", "mdy", "--exclude-month", "February 2024", "--quiet",
        ],
    )

    assert result.exit_code == 0
    rows = _sheet_rows(out_dir / "without_February_2024_us.xlsx")
    assert rows[1:] == [["03/10/2024", 2]]


def test_process_unexpected_error_exits_1(
    monkeypatch: pytest.MonkeyPatch, tmp_path: Path
) -> None:
    csv_path = _write_csv(tmp_path, "scenario.csv", SCENARIO_CSV)
    out_dir = tmp_path / "out"

    def _boom(*_args: object, **_kwargs: object) -> Path:
        raise RuntimeError("disk on fire")

    monkeypatch.setattr(cli_mod, "write_workbook", _boom)

    result = runner.invoke(
        app,
        [
            "process", "--input", str(csv_path), "--out-dir", str(out_dir),
            "--remove", "Doctor", "--quiet",
        ],
    )

    assert result.exit_code == 1
    manifest = _read_json(out_dir / "run_manifest.json")
    assert manifest["status"] == "failed"
    assert manifest["error_code"] == 1
    assert "disk on fire" in manifest["error_message"]
