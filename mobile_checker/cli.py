"""UK Mobile Coverage Checker CLI.

Check UK mobile coverage using free Ofcom open data and postcodes.io.
"""

from __future__ import annotations

import argparse
import sys
from pathlib import Path

from mobile_checker.checker.orchestrator import Checker
from mobile_checker.common.config_loader import load_config
from mobile_checker.common.constants import (
    COMMANDS,
    DEFAULT_CONFIG_DIR,
    DEFAULT_DATA_DIR,
    EXIT_HARD_FAIL,
    EXIT_PARTIAL,
    EXIT_SUCCESS,
)
from mobile_checker.common.errors import CoverageCheckError
from mobile_checker.common.fs import dump_json
from mobile_checker.common.ids import generate_run_id
from mobile_checker.common.logging import build_logger, log_event
from mobile_checker.common.models import CheckResult

SEPARATOR_WIDTH = 52
TABLE_WIDTH = 44


def parse_args(argv: list[str]) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description=__doc__, formatter_class=argparse.RawDescriptionHelpFormatter)
    parser.add_argument("command", choices=COMMANDS)
    parser.add_argument("postcodes", nargs="*", help="postcodes to check, e.g. SW1A1AA EC1A1BB")
    parser.add_argument("--edition", default=None, help="Ofcom dataset edition for setup (default from config)")
    parser.add_argument("--force", action="store_true", help="re-download and rebuild even if data exists")
    parser.add_argument("--json", action="store_true", dest="json_output", help="output check results as JSON")
    parser.add_argument("--config-dir", default=str(DEFAULT_CONFIG_DIR))
    parser.add_argument("--overlay-config-dir", default=None)
    parser.add_argument("--data-dir", default=str(DEFAULT_DATA_DIR))
    parser.add_argument("--log-level", default="WARN", choices=["DEBUG", "INFO", "WARN", "ERROR"])
    return parser.parse_args(argv)


def _icon(flag: bool) -> str:
    return "✓" if flag else "✗"


def render_result(result: CheckResult) -> str:
    sep = "─" * SEPARATOR_WIDTH
    lines = ["", sep, f"  Postcode: {result.postcode}", sep]

    if result.error:
        lines.append(f"  ✗ {result.error}")
        return "\n".join(lines)

    geo = result.geographic
    if geo is not None:
        lines.append(f"  Region:   {geo.region or '-'}")
        lines.append(f"  District: {geo.admin_district or '-'}")
        lines.append(f"  Country:  {geo.country or '-'}")
        if geo.latitude is not None and geo.longitude is not None:
            lines.append(f"  Lat/Lon:  {geo.latitude:.6f}, {geo.longitude:.6f}")

    if result.note:
        lines.extend(["", f"  Note: {result.note}"])
        return "\n".join(lines)

    mobile = result.mobile
    if mobile is None:
        lines.extend(["", "  Mobile data: Not available"])
        return "\n".join(lines)

    lines.append("")
    lines.append(f"  {'Operator':<12} {'Voice':<10} {'4G':<10} {'5G':<10}")
    lines.append("  " + "─" * TABLE_WIDTH)
    for op in mobile.operators:
        voice = f"{_icon(op.has_voice)} {op.voice}"
        four_g = f"{_icon(op.has_four_g)} {op.four_g}"
        five_g = f"{_icon(op.has_five_g)} {op.five_g}"
        lines.append(f"  {op.name:<12} {voice:<10} {four_g:<10} {five_g:<10}")
    lines.append("  " + "─" * TABLE_WIDTH)
    lines.append(
        f"  4G operators: {mobile.overall.four_g_count}/4   5G operators: {mobile.overall.five_g_count}/4"
    )
    lines.extend(["", "  Source: Ofcom Connected Nations (open data)"])
    return "\n".join(lines)


def run_setup(checker: Checker, edition: str, force: bool) -> int:
    report = checker.setup(edition, force=force)
    if report.downloaded and not report.built:
        print(f"Ofcom mobile {report.edition} CSV saved to {report.csv_path}")
        print(f"  Existing database at {report.db_path} was kept: store not rebuilt, pass --force to replace it")
        return EXIT_SUCCESS
    print(f"Ofcom mobile {report.edition} dataset ready at {report.db_path}")
    if report.built:
        print(f"  Rows loaded: {report.rows_inserted} (skipped {report.rows_skipped})")
    print("  You can now run: mobile-checker check <POSTCODE>")
    return EXIT_SUCCESS


def run_check(checker: Checker, postcodes: list[str], json_output: bool) -> int:
    if len(postcodes) == 1:
        results = [checker.check(postcodes[0])]
    else:
        results = checker.check_multiple(postcodes)

    if json_output:
        print(dump_json([result.to_dict() for result in results]))
    else:
        print("\n".join(render_result(result) for result in results))

    if any(not result.valid for result in results):
        return EXIT_PARTIAL
    return EXIT_SUCCESS


def run_command(args: argparse.Namespace) -> int:
    run_id = generate_run_id(args.command)
    data_dir = Path(args.data_dir)
    overlay_config_dir = Path(args.overlay_config_dir) if args.overlay_config_dir else None

    logger = build_logger(run_id, data_dir=data_dir if args.command == "setup" else None, level=args.log_level)
    config = load_config(Path(args.config_dir), overlay_config_dir=overlay_config_dir)
    checker = Checker.from_config(config, data_dir)

    if args.command == "setup":
        edition = args.edition or config.datasets.default_edition
        log_event(logger, "setup start", stage="setup", edition=edition, event="SETUP_START", status="ok")
        try:
            return run_setup(checker, edition, args.force)
        except CoverageCheckError as exc:
            log_event(
                logger,
                f"setup failed: {exc}",
                stage="setup",
                edition=edition,
                event="SETUP_FAIL",
                status="error",
                error_code=exc.error_code,
            )
            print(f"Setup failed: {exc}", file=sys.stderr)
            return EXIT_HARD_FAIL

    if not args.postcodes:
        print("check requires at least one postcode", file=sys.stderr)
        return EXIT_HARD_FAIL
    return run_check(checker, args.postcodes, args.json_output)


def main(argv: list[str] | None = None) -> int:
    args = parse_args(argv if argv is not None else sys.argv[1:])
    try:
        return run_command(args)
    except CoverageCheckError as exc:
        print(f"Error: {exc}", file=sys.stderr)
        return EXIT_HARD_FAIL


if __name__ == "__main__":
    raise SystemExit(main())
