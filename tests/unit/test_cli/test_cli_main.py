"""Tests for the autofin command line."""

import json

import pytest

from autofin.cli.main import build_parser, main
from autofin.core.database import DatabaseManager


@pytest.fixture
def cli(tmp_path):
    """Run main() against a database and statement directory under tmp_path."""
    DatabaseManager.reset_instance()
    base = [
        "--db", str(tmp_path / "autofin.db"),
        "--statement-dir", str(tmp_path / "statements"),
        "--user", "tester",
    ]

    def _run(*argv):
        return main(base + list(argv))

    yield _run
    DatabaseManager.reset_instance()


@pytest.fixture
def seeded(cli):
    cli("currency", "set", "LAK", "1")
    cli("wordlist", "add", "ot", "commission")
    cli("wordlist", "add", "phone allowance", "ALLOWANCE")
    cli("wordlist", "add", "salary", "SALARY")
    return cli


def uploaded_name(cli, capsys, path) -> str:
    capsys.readouterr()
    assert cli("upload", str(path)) == 0
    return capsys.readouterr().out.strip().splitlines()[-1]


class TestParser:
    """Tests for argument parsing."""

    def test_product_choices(self):
        args = build_parser().parse_args(
            ["calculate", "-n", "BN-1", "-s", "f.xlsx", "-p", "pl"]
        )
        assert args.product == "PL"
        assert args.user == "cli"

    def test_no_command(self, capsys):
        assert main([]) == 1


class TestCommands:
    """Tests for the command handlers."""

    def test_init_db(self, cli, capsys):
        assert cli("init-db") == 0
        out = capsys.readouterr().out
        assert "statement_file_analysis" in out
        assert "income_wordlist" in out

    def test_wordlist_list_in_match_order(self, seeded, capsys):
        capsys.readouterr()
        assert seeded("wordlist", "list") == 0
        lines = capsys.readouterr().out.strip().splitlines()
        assert [line.split("] ")[1] for line in lines] == [
            "salary -> SALARY",
            "phone allowance -> ALLOWANCE",
            "ot -> COMMISSION",
        ]

    def test_calculate_and_complete(self, seeded, capsys, statement_path):
        name = uploaded_name(seeded, capsys, statement_path)

        assert seeded("calculate", "-n", "BN-1", "-s", name, "-p", "PL") == 0
        out = capsys.readouterr().out
        assert "Calculation BN-1 [PENDING]" in out
        assert "1,136,000.00" in out

        assert seeded("complete", "-n", "BN-1") == 0
        assert "BN-1: COMPLETED" in capsys.readouterr().out

    def test_show_json(self, seeded, capsys, statement_path):
        name = uploaded_name(seeded, capsys, statement_path)
        seeded("calculate", "-n", "BN-1", "-s", name, "-p", "SA")
        capsys.readouterr()

        assert seeded("show", "-n", "BN-1", "--json") == 0
        data = json.loads(capsys.readouterr().out)
        assert data["product"] == "SA"
        assert data["monthly_average_income"] == "1170000"
        assert data["created_by"] == "tester"

    def test_recalculate_from_file(self, seeded, capsys, statement_path, tmp_path):
        name = uploaded_name(seeded, capsys, statement_path)
        seeded("calculate", "-n", "BN-1", "-s", name, "-p", "PL")
        capsys.readouterr()
        seeded("show", "-n", "BN-1", "--json")
        stored = json.loads(capsys.readouterr().out)
        edits = tmp_path / "edits.json"
        edits.write_text(json.dumps({
            "monthly_salaries": stored["salary"]["monthly_salaries"],
            "allowances": [],
            "commissions": [],
        }))

        assert seeded("recalculate", "-n", "BN-1", "-f", str(edits)) == 0
        assert "1,080,000.00" in capsys.readouterr().out

    def test_duplicate_number(self, seeded, capsys, statement_path):
        name = uploaded_name(seeded, capsys, statement_path)
        seeded("calculate", "-n", "BN-1", "-s", name, "-p", "PL")
        capsys.readouterr()

        assert seeded("calculate", "-n", "BN-1", "-s", name, "-p", "PL") == 1
        assert "Error [DUPLICATE_NUMBER]" in capsys.readouterr().out

    def test_unknown_calculation(self, cli, capsys):
        assert cli("show", "-n", "missing") == 1
        assert "CALCULATION_NOT_FOUND" in capsys.readouterr().out

    def test_transactions(self, seeded, capsys, statement_path):
        name = uploaded_name(seeded, capsys, statement_path)
        seeded("calculate", "-n", "BN-1", "-s", name, "-p", "PL")
        capsys.readouterr()

        assert seeded("transactions", "-n", "BN-1", "--category", "salary", "--month", "March-2024") == 0
        assert "FT006" in capsys.readouterr().out
        assert seeded("transactions", "-n", "BN-1") == 1

    def test_list_and_export(self, seeded, capsys, statement_path, tmp_path):
        name = uploaded_name(seeded, capsys, statement_path)
        seeded("calculate", "-n", "BN-1", "-s", name, "-p", "PL")
        capsys.readouterr()

        assert seeded("list") == 0
        assert "BN-1" in capsys.readouterr().out
        assert seeded("export", "-n", "BN-1", "-o", str(tmp_path / "BN-1.xlsx")) == 0
        assert seeded("export", "-o", str(tmp_path / "all.xlsx")) == 0
        assert (tmp_path / "BN-1.xlsx").exists()
        assert (tmp_path / "all.xlsx").exists()
