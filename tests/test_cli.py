"""
CLI smoke tests through typer's CliRunner; nothing here reaches Google.
"""

from typer.testing import CliRunner

from sheet_calendar_sync.cli import app

runner = CliRunner()


def test_import_help_warns_that_other_dates_are_dropped():
    result = runner.invoke(app, ["import", "--help"])
    assert result.exit_code == 0
    assert "dropped" in result.output


def test_import_rejects_inverted_window():
    result = runner.invoke(app, ["import", "--start", "2024-03-01", "--end", "2024-02-01"])
    assert result.exit_code == 1
    assert "--end must be after --start" in result.output
