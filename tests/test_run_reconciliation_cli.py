"""
Unit tests for the reconciliation CLI (scripts/run_reconciliation.py).
"""

from __future__ import annotations

import json
import sys
from pathlib import Path
from unittest.mock import patch

# Add parent directory to path
sys.path.insert(0, str(Path(__file__).parent.parent))

from scripts.run_reconciliation import main


class TestRunReconciliationCli:
    """Exit codes and output formats."""

    def test_json_report_and_zero_exit(self, fake_db, capsys):
        exit_code = main(["--json", "--triggered-by", "nightly-cron"])

        assert exit_code == 0
        report = json.loads(capsys.readouterr().out)
        assert report["success"] is True
        assert report["triggered_by"] == "nightly-cron"
        assert "Valid agencies ensured" in report["fixes_applied"]

    def test_summary_output(self, fake_db, capsys):
        assert main([]) == 0

        out = capsys.readouterr().out
        assert "RECONCILIATION SUMMARY" in out
        assert "Triggered by:     cli" in out
        assert "No errors!" in out

    def test_partial_failure_exits_one(self, fake_db, capsys):
        with patch(
            "services.reconciliation_service.list_commissioned_sale_ids",
            side_effect=RuntimeError("permission denied"),
        ):
            exit_code = main([])

        assert exit_code == 1
        assert "! Commission creation error: permission denied" in capsys.readouterr().out

    def test_crash_exits_one(self, fake_db, capsys):
        with patch(
            "scripts.run_reconciliation.run_reconciliation_sweep",
            side_effect=RuntimeError("no client"),
        ):
            assert main([]) == 1

        assert "FATAL ERROR: no client" in capsys.readouterr().err
