"""Unit tests for CLI argument parsing and output formatting."""
from __future__ import annotations

from decimal import Decimal

from autoborrow.cli import build_parser, format_account
from autoborrow.models import AccountSnapshot, Balance


class TestBuildParser:
    def test_check_command(self) -> None:
        args = build_parser().parse_args(["check"])
        assert args.command == "check"
        assert args.dry_run is False

    def test_account_command(self) -> None:
        args = build_parser().parse_args(["account"])
        assert args.command == "account"

    def test_run_command(self) -> None:
        args = build_parser().parse_args(["run"])
        assert args.command == "run"

    def test_dry_run_flag(self) -> None:
        args = build_parser().parse_args(["--dry-run", "check"])
        assert args.dry_run is True

    def test_config_flag(self) -> None:
        args = build_parser().parse_args(["--config", "/tmp/c.yaml", "check"])
        assert args.config == "/tmp/c.yaml"

    def test_log_level_flag(self) -> None:
        args = build_parser().parse_args(["--log-level", "DEBUG", "run"])
        assert args.log_level == "DEBUG"

    def test_no_command(self) -> None:
        args = build_parser().parse_args([])
        assert args.command is None


class TestFormatAccount:
    def test_lists_non_empty_balances(self) -> None:
        snapshot = AccountSnapshot(
            margin_level=Decimal("2.5"),
            balances={
                "ETH": Balance(currency="ETH", available=Decimal("1"), borrowed=Decimal("2")),
                "BNB": Balance(currency="BNB"),
            },
        )
        text = format_account(snapshot)
        assert "Margin level: 2.5" in text
        assert "ETH: available 1" in text
        assert "borrowed 2" in text
        assert "net -1" in text
        assert "BNB" not in text
