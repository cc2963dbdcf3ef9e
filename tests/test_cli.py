"""Tests for the command line interface."""
import asyncio

import pytest

from groceryscan.main import parse_args, run_command
from groceryscan.services import build_services


def test_parse_crawl_args():
    """Test crawl options."""
    args = parse_args(["crawl", "--retailer", "tesco", "--retailer", "asda", "--stop-after-minutes", "30"])
    assert args.command == "crawl"
    assert args.retailer == ["tesco", "asda"]
    assert args.stop_after_minutes == 30.0


def test_parse_crawl_rejects_unknown_retailer():
    """Test retailer choices."""
    with pytest.raises(SystemExit):
        parse_args(["crawl", "--retailer", "waitrose"])


def test_parse_compare_args():
    """Test compare options."""
    args = parse_args(["compare", "milk", "bread", "--postcode", "SW1A 1AA"])
    assert args.ingredients == ["milk", "bread"]
    assert args.postcode == "SW1A 1AA"


def test_compare_command_prints_comparison(tmp_path, capsys):
    """Test compare against an empty catalog."""
    services = build_services(db_path=tmp_path / "products.db", export_metrics=False)
    args = parse_args(["compare", "saffron", "--postcode", "SW1A 1AA"])

    assert asyncio.run(run_command(args, services)) == 0
    out = capsys.readouterr().out
    assert '"postcode": "SW1A 1AA"' in out
    assert '"estimated_total": true' in out


def test_cleanup_command(tmp_path):
    """Test cleanup on an empty catalog."""
    services = build_services(db_path=tmp_path / "products.db", export_metrics=False)
    args = parse_args(["cleanup", "--days", "7"])

    assert asyncio.run(run_command(args, services)) == 0


def test_backup_command(tmp_path):
    """Test that backup writes one snapshot into the backup directory."""
    services = build_services(
        db_path=tmp_path / "products.db", export_metrics=False, backup_dir=tmp_path / "backups"
    )
    args = parse_args(["backup", "--keep", "3"])

    assert args.keep == 3
    assert asyncio.run(run_command(args, services)) == 0
    assert len(list((tmp_path / "backups").glob("products_*.db"))) == 1
