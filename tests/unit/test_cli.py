"""Unit tests for the command line entry point (local sources only)."""
import json

import pytest

from sheetmind.cli import build_parser, main, run
from sheetmind.services.ingestion_service import IngestionService


@pytest.fixture(autouse=True)
def isolated_settings(monkeypatch, tmp_path):
    """Run from an empty directory so no .env file is picked up."""
    from sheetmind.config import get_settings

    monkeypatch.chdir(tmp_path)
    get_settings.cache_clear()
    yield
    get_settings.cache_clear()


class TestArguments:
    def test_repeatable_sheet_option(self):
        args = build_parser().parse_args(["book.xlsx", "--sheet", "Jan", "--sheet", "Feb", "--merge"])

        assert args.sheets == ["Jan", "Feb"]
        assert args.merge
        assert not args.chunked


class TestMain:
    def test_csv_file_summary(self, tmp_path, capsys):
        path = tmp_path / "prices.csv"
        path.write_text("name,price\npen,1.5\n", encoding="utf-8")

        exit_code = main([str(path), "--json"])

        assert exit_code == 0
        summary = json.loads(capsys.readouterr().out)
        assert summary["sheets"] == ["Sheet1"]
        assert summary["table"]["columns"] == ["name", "price"]
        assert summary["table"]["rows"] == [{"name": "pen", "price": 1.5}]

    def test_merge_chunked(self, tmp_path, capsys, make_xlsx):
        path = tmp_path / "book.xlsx"
        path.write_bytes(make_xlsx({"Jan": [["item"], ["pen"]], "Feb": [["item"], ["ink"]]}))

        exit_code = main([str(path), "--merge", "--chunked"])

        assert exit_code == 0
        summary = json.loads(capsys.readouterr().out)
        assert summary["table"]["row_count"] == 2
        assert summary["table"]["columns"] == ["_sourceSheet", "item"]
        assert "rows" not in summary["table"]

    def test_missing_file_exits_with_error(self, tmp_path, capsys):
        exit_code = main([str(tmp_path / "nope.csv")])

        assert exit_code == 1
        assert "Cannot read file" in capsys.readouterr().err

    def test_invalid_sheets_link_exits_with_error(self, capsys):
        exit_code = main(["https://docs.google.com/spreadsheets/u/0/"])

        assert exit_code == 1
        assert "Invalid Google Sheets link" in capsys.readouterr().err


class TestRunGoogleSheet:
    @pytest.mark.asyncio
    async def test_sheet_option_matches_sanitized_titles(self, settings, fake_api, capsys):
        """A requested "Q1/Q2" tab is loaded as "Q1_Q2" and still selected."""
        fake_api.add_sheet("Q1/Q2", [["a"], ["1"]], sheet_id=5)
        fake_api.add_sheet("Other", [["b"], ["2"]], sheet_id=6)
        args = build_parser().parse_args([
            "https://docs.google.com/spreadsheets/d/SHEET123/edit#gid=6",
            "--sheet", "Other",
            "--sheet", "Q1/Q2",
        ])

        exit_code = await run(args, IngestionService(settings, transport=fake_api.transport))

        assert exit_code == 0
        summary = json.loads(capsys.readouterr().out)
        assert summary["sheets"] == ["Q1_Q2", "Other"]
        assert summary["table"]["sheet_name"] == "Q1_Q2"
