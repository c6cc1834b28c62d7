from __future__ import annotations

import argparse
import logging
import sys
from pathlib import Path

from pharmadesk.application.container import AppContainer, build_container
from pharmadesk.config import get_app_paths
from pharmadesk.domain.errors import AppError
from pharmadesk.logging_config import setup_logging
from pharmadesk.services.income_aggregator import GRANULARITIES
from pharmadesk.services.receipt_service import format_price, format_receipt_data


def build_parser() -> argparse.ArgumentParser:
    p = argparse.ArgumentParser(prog="pharmadesk", description="Pharmacy inventory and sales client tools.")
    p.add_argument("--home", type=Path, default=None, help="Data directory (default: per-user application folder).")
    sub = p.add_subparsers(dest="command", required=True)

    login = sub.add_parser("login", help="Log in and keep the session on this device.")
    login.add_argument("username")
    login.add_argument("password")
    sub.add_parser("logout", help="Forget the stored session.")

    layout = sub.add_parser("layout", help="Receipt print layout settings.")
    layout_sub = layout.add_subparsers(dest="action", required=True)
    layout_sub.add_parser("show")
    layout_sub.add_parser("export")
    imp = layout_sub.add_parser("import")
    imp.add_argument("file", type=Path)
    preset = layout_sub.add_parser("preset")
    preset.add_argument("name")
    layout_sub.add_parser("reset")
    set_value = layout_sub.add_parser("set")
    set_value.add_argument("path", help="Setting path, e.g. fontSizes.normal")
    set_value.add_argument("value", type=float)

    income = sub.add_parser("income", help="Income summary for the current period.")
    income.add_argument("--period", choices=GRANULARITIES, default="daily")
    income.add_argument("--owner", default=None)
    income.add_argument("--excel", type=Path, default=None, help="Also export the summary to this .xlsx file.")

    receipt = sub.add_parser("print", help="Print the receipt of a sale.")
    receipt.add_argument("sale_id", type=int)
    return p


def _layout(container: AppContainer, args) -> None:
    store = container.layout
    if args.action == "show":
        for name in store.preset_names():
            print(f"preset: {name}")
        print(store.export_json())
    elif args.action == "export":
        print(store.export_json())
    elif args.action == "import":
        if not store.import_json(args.file.read_text(encoding="utf-8")):
            raise SystemExit("Failed to import configuration. Please check the format.")
        print("Print layout configuration imported.")
    elif args.action == "preset":
        store.apply_preset(args.name)
        print(f"Preset '{args.name}' applied.")
    elif args.action == "reset":
        store.reset_to_default()
        print("Print layout reset to default.")
    elif args.action == "set":
        value = int(args.value) if args.value.is_integer() else args.value
        store.update_value(args.path, value)
        print(f"{args.path} = {store.get_value(args.path)}")


def _income(container: AppContainer, args) -> None:
    svc = container.income
    svc.refresh(args.period)
    svc.set_owner_filter(args.owner)

    totals = svc.totals()
    print(f"{totals.label}: income {format_price(totals.total_income)}, sales {format_price(totals.total_sales)}, items {totals.item_count}")
    series = svc.owner_series()
    for owner, value in zip(series.owners, series.data):
        print(f"  {owner}: {format_price(value)}")
    for e in svc.detail_entries():
        print(f"{e.period_key}  {e.owner_name:<24} {format_price(e.total_income):>14} {format_price(e.total_sales):>14} {e.item_count:>6}")

    if args.excel:
        svc.export_excel(str(args.excel))
        print(f"Excel report written to {args.excel}")


def _print_receipt(container: AppContainer, args) -> None:
    data = container.api.sales.get(args.sale_id)
    sale = data.get("sale", data) if isinstance(data, dict) else {}
    container.printer.print_receipt(format_receipt_data(sale))
    print(f"Receipt #{args.sale_id} sent to printer.")


def main(argv: list[str] | None = None) -> int:
    args = build_parser().parse_args(argv)
    paths = get_app_paths(base=args.home)
    setup_logging(paths.logs_dir, level=logging.INFO)

    container = None
    try:
        container = build_container(paths)
        if args.command == "login":
            owner = container.session.login(args.username, args.password)
            print(f"Logged in as {owner.get('username') or args.username}.")
        elif args.command == "logout":
            container.session.logout()
            print("Logged out.")
        elif args.command == "layout":
            _layout(container, args)
        elif args.command == "income":
            _income(container, args)
        elif args.command == "print":
            _print_receipt(container, args)
    except AppError as exc:
        logging.getLogger(__name__).error("command_failed command=%s error=%s", args.command, exc)
        print(f"Error: {exc}", file=sys.stderr)
        return 1
    finally:
        if container is not None:
            container.shutdown()
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
