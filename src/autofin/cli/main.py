#!/usr/bin/env python3
"""
autofin CLI - income calculation from bank statements.

Usage:
    autofin init-db
    autofin currency set USD 21500
    autofin wordlist add "salary" SALARY
    autofin upload statement.xlsx
    autofin calculate --number BN-1 --statement <file_name> --product PL
    autofin recalculate --number BN-1 --file edits.json
    autofin complete --number BN-1
    autofin show --number BN-1
    autofin export --number BN-1 --output BN-1.xlsx
"""

import argparse
import json
import logging
import sys
from pathlib import Path
from typing import List, Optional

from autofin.core.config import EngineSettings
from autofin.core.database import DatabaseManager
from autofin.core.exceptions import AutofinError, ValidationError
from autofin.core.models import Product
from autofin.services.currency.rate_provider import CurrencyRateProvider
from autofin.services.income.repository import CalculationQuery
from autofin.services.income.service import IncomeService, RecalculationRequest
from autofin.services.income.wordlist import WordlistStore
from autofin.services.statement_store import StatementFileStore


def setup_logging(verbose: bool = False, debug: bool = False):
    """Configure logging."""
    if debug:
        level = logging.DEBUG
    elif verbose:
        level = logging.INFO
    else:
        level = logging.WARNING

    logging.basicConfig(
        level=level,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s"
    )


def build_service(conn, settings: EngineSettings, statement_dir: Optional[str] = None) -> IncomeService:
    store = StatementFileStore(
        Path(statement_dir or settings.storage.statement_dir), conn, settings.statement
    )
    return IncomeService(conn, store, settings=settings)


# ============================================================================
# Command Handlers
# ============================================================================

def cmd_init_db(args, conn, settings):
    """Handle init-db command - schema is created on connect."""
    tables = DatabaseManager().get_tables()
    print(f"Database ready: {args.db or settings.storage.db_path}")
    print(f"Tables: {', '.join(sorted(tables))}")
    return 0


def cmd_currency(args, conn, settings):
    """Handle currency set/list."""
    provider = CurrencyRateProvider(conn)
    if args.currency_command == "set":
        currency = provider.set_rate(args.code, args.rate, user=args.user)
        print(f"{currency.code}: {currency.exchange_rate}")
        return 0

    currencies = provider.list(args.code)
    if not currencies:
        print("No currencies found.")
    for currency in currencies:
        print(f"{currency.code}: {currency.exchange_rate}")
    return 0


def cmd_wordlist(args, conn, settings):
    """Handle wordlist add/list."""
    store = WordlistStore(conn)
    if args.wordlist_command == "add":
        entry = store.create(args.word, args.category, user=args.user)
        print(f"[{entry.id}] {entry.word} -> {entry.category.value}")
        return 0

    entries = store.list(word=args.word, category=args.category)
    if not entries:
        print("No wordlist entries found.")
    for entry in entries:
        print(f"[{entry.id}] {entry.word} -> {entry.category.value}")
    return 0


def cmd_upload(args, conn, settings):
    """Handle upload command - store a statement workbook."""
    service = build_service(conn, settings, args.statement_dir)
    record = service.statements.upload_path(Path(args.file), user=args.user)
    print(record.file_name)
    return 0


def cmd_calculate(args, conn, settings):
    """Handle calculate command - compute a new calculation."""
    service = build_service(conn, settings, args.statement_dir)
    run = service.calculate_income(
        args.number,
        args.statement,
        args.product,
        interview_salary=args.interview_salary,
        by=args.user,
    )
    print_calculation(run.calculation)
    print(f"\nRows: {run.stats}")
    return 0


def cmd_recalculate(args, conn, settings):
    """Handle recalculate command - apply edited buckets from a JSON file."""
    try:
        with open(args.file, encoding="utf-8") as f:
            payload = json.load(f)
    except (OSError, json.JSONDecodeError) as e:
        raise ValidationError(f"Cannot read recalculation file {args.file}: {e}")

    service = build_service(conn, settings, args.statement_dir)
    calc = service.recalculate_income(args.number, RecalculationRequest.from_dict(payload), by=args.user)
    print_calculation(calc)
    return 0


def cmd_complete(args, conn, settings):
    service = build_service(conn, settings, args.statement_dir)
    calc = service.complete_calculation(args.number, by=args.user)
    print(f"{calc.number}: {calc.status.value}")
    return 0


def cmd_show(args, conn, settings):
    service = build_service(conn, settings, args.statement_dir)
    calc = service.get_calculation(args.number)
    if args.json:
        print(json.dumps(calc.to_dict(), indent=2, ensure_ascii=False))
    else:
        print_calculation(calc)
    return 0


def cmd_list(args, conn, settings):
    service = build_service(conn, settings, args.statement_dir)
    query = CalculationQuery(
        product=Product.parse(args.product) if args.product else None,
        number=args.number,
        display_name=args.name,
        page_size=args.limit,
    )
    page = service.list_calculations(query)
    if not page.calculations:
        print("No calculations found.")
    for calc in page.calculations:
        print(
            f"{calc.number:<16} {calc.product.value:<3} {calc.status.value:<10} "
            f"{calc.account.display_name:<28} {calc.monthly_net_income:>18,.2f}"
        )
    return 0


def cmd_transactions(args, conn, settings):
    """Handle transactions command - drill down into one category and month."""
    service = build_service(conn, settings, args.statement_dir)
    if args.bill:
        txn = service.get_income_transaction(args.number, args.bill)
        print(f"{txn.date.isoformat()}  {txn.bill_number:<16} {txn.amount:>18,.2f}  {txn.memo}")
        return 0

    if not args.category or not args.month:
        raise ValidationError("--category and --month are required without --bill")
    transactions = service.list_income_transactions(args.number, args.category, args.month)
    if not transactions:
        print("No transactions found.")
    for txn in transactions:
        print(f"{txn.date.isoformat()}  {txn.bill_number:<16} {txn.amount:>18,.2f}  {txn.memo}")
    return 0


def cmd_export(args, conn, settings):
    """Handle export command - one calculation, or the list when no number is given."""
    service = build_service(conn, settings, args.statement_dir)
    if args.number:
        path = service.export_calculation(args.number, Path(args.output))
    else:
        query = CalculationQuery(
            product=Product.parse(args.product) if args.product else None,
            page_size=args.limit,
        )
        path = service.export_calculations(query, Path(args.output))
    print(f"Report written: {path}")
    return 0


def print_calculation(calc):
    print(f"\nCalculation {calc.number} [{calc.status.value}]")
    print(f"  Product:          {calc.product.value}")
    print(f"  Account:          {calc.account.number} {calc.account.display_name} ({calc.account.currency})")
    print(f"  Period (months):  {calc.period_in_month}")
    print(f"  Exchange rate:    {calc.exchange_rate}")
    print(f"  Salary months:    {len(calc.salary.monthly_salaries)}")
    print(f"  Allowance titles: {len(calc.allowance.allowances)}")
    print(f"  Commission months: {len(calc.commission.commissions)}")
    print(f"  Total income:          {calc.total_income:>20,.2f}")
    print(f"  Total basic salary:    {calc.total_basic_salary:>20,.2f}")
    print(f"  Total other income:    {calc.total_other_income:>20,.2f}")
    print(f"  Monthly average income:{calc.monthly_average_income:>20,.2f}")
    print(f"  Monthly net income:    {calc.monthly_net_income:>20,.2f}")


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="autofin",
        description="Income classification and monthly net income estimation",
    )
    parser.add_argument('--config', help='Settings JSON file')
    parser.add_argument('--db', help='Database path (overrides settings)')
    parser.add_argument('--statement-dir', help='Statement storage directory (overrides settings)')
    parser.add_argument('--user', default='cli', help='Name recorded in audit fields')
    parser.add_argument('--verbose', '-v', action='store_true', help='Verbose output')
    parser.add_argument('--debug', action='store_true', help='Debug output')

    subparsers = parser.add_subparsers(dest='command', help='Command to run')

    init_parser = subparsers.add_parser('init-db', help='Create the database schema')
    init_parser.set_defaults(func=cmd_init_db)

    currency_parser = subparsers.add_parser('currency', help='Manage exchange rates')
    currency_sub = currency_parser.add_subparsers(dest='currency_command', required=True)
    set_parser = currency_sub.add_parser('set', help='Create or update a rate')
    set_parser.add_argument('code', help='3-letter currency code')
    set_parser.add_argument('rate', help='Exchange rate to the reporting currency')
    list_currency = currency_sub.add_parser('list', help='List rates')
    list_currency.add_argument('--code', help='Code filter')
    currency_parser.set_defaults(func=cmd_currency)

    wordlist_parser = subparsers.add_parser('wordlist', help='Manage the income wordlist')
    wordlist_sub = wordlist_parser.add_subparsers(dest='wordlist_command', required=True)
    add_parser = wordlist_sub.add_parser('add', help='Add a keyword')
    add_parser.add_argument('word')
    add_parser.add_argument('category', choices=['SALARY', 'ALLOWANCE', 'COMMISSION'],
                            type=str.upper)
    list_words = wordlist_sub.add_parser('list', help='List keywords in match order')
    list_words.add_argument('--word', help='Word filter')
    list_words.add_argument('--category', type=str.upper,
                            choices=['SALARY', 'ALLOWANCE', 'COMMISSION'])
    wordlist_parser.set_defaults(func=cmd_wordlist)

    upload_parser = subparsers.add_parser('upload', help='Store a statement workbook')
    upload_parser.add_argument('file', help='Statement .xlsx file')
    upload_parser.set_defaults(func=cmd_upload)

    calc_parser = subparsers.add_parser('calculate', help='Compute a new calculation')
    calc_parser.add_argument('--number', '-n', required=True, help='Business number')
    calc_parser.add_argument('--statement', '-s', required=True, help='Stored statement file name')
    calc_parser.add_argument('--product', '-p', required=True, type=str.upper,
                             choices=[p.value for p in Product])
    calc_parser.add_argument('--interview-salary', help='Declared basic salary from interview')
    calc_parser.set_defaults(func=cmd_calculate)

    recalc_parser = subparsers.add_parser('recalculate', help='Recalculate from edited buckets')
    recalc_parser.add_argument('--number', '-n', required=True)
    recalc_parser.add_argument('--file', '-f', required=True, help='JSON file with edited buckets')
    recalc_parser.set_defaults(func=cmd_recalculate)

    complete_parser = subparsers.add_parser('complete', help='Complete a calculation')
    complete_parser.add_argument('--number', '-n', required=True)
    complete_parser.set_defaults(func=cmd_complete)

    show_parser = subparsers.add_parser('show', help='Show a calculation')
    show_parser.add_argument('--number', '-n', required=True)
    show_parser.add_argument('--json', action='store_true', help='Print the stored representation')
    show_parser.set_defaults(func=cmd_show)

    list_parser = subparsers.add_parser('list', help='List calculations, newest first')
    list_parser.add_argument('--product', type=str.upper, choices=[p.value for p in Product])
    list_parser.add_argument('--number', help='Number filter')
    list_parser.add_argument('--name', help='Account name filter')
    list_parser.add_argument('--limit', type=int, default=50)
    list_parser.set_defaults(func=cmd_list)

    txn_parser = subparsers.add_parser('transactions', help='Show statement rows behind a calculation')
    txn_parser.add_argument('--number', '-n', required=True)
    txn_parser.add_argument('--category', type=str.upper,
                            choices=['SALARY', 'ALLOWANCE', 'COMMISSION'])
    txn_parser.add_argument('--month', help='Month label, e.g. January-2024')
    txn_parser.add_argument('--bill', help='Reference number of a single row')
    txn_parser.set_defaults(func=cmd_transactions)

    export_parser = subparsers.add_parser('export', help='Export calculations to Excel')
    export_parser.add_argument('--number', '-n', help='Single calculation (omit for list export)')
    export_parser.add_argument('--product', type=str.upper, choices=[p.value for p in Product])
    export_parser.add_argument('--limit', type=int, default=500)
    export_parser.add_argument('--output', '-o', required=True, help='Output .xlsx path')
    export_parser.set_defaults(func=cmd_export)

    return parser


def main(argv: Optional[List[str]] = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)

    if not args.command:
        parser.print_help()
        return 1

    setup_logging(args.verbose, args.debug)

    settings = EngineSettings.load(Path(args.config) if args.config else None)
    db_path = args.db or settings.storage.db_path

    db = DatabaseManager()
    try:
        conn = db.init(db_path)
    except AutofinError as e:
        print(f"Database error: {e}")
        return 1

    try:
        return args.func(args, conn, settings)
    except AutofinError as e:
        print(f"Error [{e.code}]: {e.message}")
        return 1
    except KeyboardInterrupt:
        print("\nOperation cancelled")
        return 130
    except Exception as e:
        print(f"\nError: {e}")
        if args.debug:
            import traceback
            traceback.print_exc()
        return 1
    finally:
        db.close()


if __name__ == "__main__":
    sys.exit(main())
