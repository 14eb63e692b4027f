"""
Tests for the holdermap CLI: argument parsing, clamped limits, JSON output
and error reporting. The ledger and settings are patched; nothing touches the network.
"""

from __future__ import annotations

import json
from dataclasses import replace
from unittest.mock import patch

import pytest
from conftest import HOLDER_1, MINT

from backend_holdermap import cli
from backend_holdermap.service import HolderMapService


def _run(argv, ledger, settings):
    emitted = []
    with patch.object(cli, "_open_ledger", return_value=ledger), patch.object(
        cli, "get_settings", return_value=settings
    ), patch.object(cli, "_emit", side_effect=lambda payload, indent=2: emitted.append(payload)):
        code = cli.main(argv)
    return code, emitted


def _last_stderr_json(capsys):
    return json.loads(capsys.readouterr().err.strip().splitlines()[-1])


def test_snapshot_command_prints_snapshot(snapshot_ledger, settings):
    """snapshot emits the holder graph for the mint."""
    code, emitted = _run(["snapshot", MINT, "--n", "50"], snapshot_ledger, settings)
    assert code == 0
    assert len(emitted) == 1
    assert emitted[0]["mint"] == MINT
    assert emitted[0]["nodes"][0]["address"] == HOLDER_1
    assert emitted[0]["edges"][0]["amountSum"] == 50.0


def test_stdout_is_a_single_json_document(snapshot_ledger, settings, capsys):
    """Log lines stay off stdout so the output parses as one JSON value."""
    with patch.object(cli, "_open_ledger", return_value=snapshot_ledger), patch.object(
        cli, "get_settings", return_value=settings
    ):
        code = cli.main(["snapshot", MINT])
    assert code == 0
    payload = json.loads(capsys.readouterr().out)
    assert payload["mint"] == MINT
    assert len(payload["nodes"]) == 3


def test_snapshot_limits_are_clamped(settings):
    """Out-of-range limits clamp; unparseable ones fall back to settings."""
    args = cli.build_parser().parse_args(
        ["snapshot", MINT, "--n", "5000", "--edge-wallets", "1", "--tx-limit", "x", "--max-signatures", "200"]
    )
    options = cli.snapshot_options_from_args(args, settings)
    assert options.holder_limit == 300
    assert options.edge_wallet_limit == 5
    assert options.tx_limit == settings.tx_limit
    assert options.max_signatures == 200


def test_watch_intervals_are_clamped(settings):
    """Poll and force-refresh intervals clamp to 2-60 and 60-3600 seconds."""
    args = cli.build_parser().parse_args(["watch", MINT, "--poll-interval", "0", "--force-refresh", "99999"])
    options = cli.live_options_from_args(args, settings)
    assert options.poll_interval_sec == 2.0
    assert options.force_refresh_sec == 3600.0


def test_invalid_mint_reports_json_error(snapshot_ledger, settings, capsys):
    """A malformed mint exits 1 with an invalid_input error on stderr."""
    code, emitted = _run(["snapshot", "bad-mint"], snapshot_ledger, settings)
    assert code == 1
    assert emitted == []
    error = _last_stderr_json(capsys)
    assert error["code"] == "invalid_input"
    assert "bad-mint" in error["error"]


def test_upstream_failure_exit_status(snapshot_ledger, settings, capsys):
    """An unknown mint exits 1 with mint_not_found."""
    snapshot_ledger.metadata = None
    code, _ = _run(["snapshot", MINT], snapshot_ledger, settings)
    assert code == 1
    assert _last_stderr_json(capsys)["code"] == "mint_not_found"


def test_board_command(snapshot_ledger, settings):
    """board emits an empty board when no programs are configured."""
    code, emitted = _run(
        ["board", "--limit", "5", "--min-total-gor", "10"],
        snapshot_ledger,
        replace(settings, source_programs={}),
    )
    assert code == 0
    assert emitted[0]["entries"] == []
    assert emitted[0]["minTotalGor"] == 10.0


def test_board_refresh_flag_forces_rebuild(snapshot_ledger, settings):
    """board --refresh bypasses the board cache."""
    seen = []
    original = HolderMapService.high_volume_board

    async def recording(self, *args, **kwargs):
        seen.append(kwargs.get("force_refresh"))
        return await original(self, *args, **kwargs)

    board_settings = replace(settings, source_programs={})
    with patch.object(HolderMapService, "high_volume_board", recording):
        assert _run(["board", "--refresh"], snapshot_ledger, board_settings)[0] == 0
        assert _run(["board"], snapshot_ledger, board_settings)[0] == 0
    assert seen == [True, False]


def test_watch_stops_after_count(snapshot_ledger, settings):
    """watch --count 1 exits after the first snapshot."""
    code, emitted = _run(["watch", MINT, "--poll-interval", "60", "--count", "1"], snapshot_ledger, settings)
    assert code == 0
    assert len(emitted) == 1
    assert emitted[0]["mint"] == MINT


def test_missing_subcommand_exits():
    """A subcommand is required."""
    with pytest.raises(SystemExit):
        cli.build_parser().parse_args([])
