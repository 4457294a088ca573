"""
Command-line interface: fetch SRM timetable + academic planner and export to file.
"""
from __future__ import annotations

import argparse
import getpass
import logging
import os
import sys
from dataclasses import replace
from pathlib import Path

import pytz

from . import __version__
from .config import PortalConfig
from .errors import AutomationBlocked, CalendarExportError, InvalidCredentials
from .export import export, merge_schedule
from .page_fetch import PLANNER_PLACEHOLDER_HTML
from .pipeline import collect_class_events, validate_credentials
from .planner_html import parse_planner_html
from .timetable_html import parse_timetable

PASSWORD_ENV = "SRM_PASSWORD"


def _read_password(args) -> str:
    password = os.environ.get(PASSWORD_ENV)
    if password:
        return password
    return getpass.getpass(f"Password for {args.username}: ")


def _build_config(args) -> PortalConfig:
    config = PortalConfig.from_env()
    if args.timetable_year_offset is not None:
        config = replace(config, timetable_year_offset=args.timetable_year_offset)
    if args.timezone:
        config = replace(config, timezone=args.timezone)
    # Raises UnknownTimeZoneError now rather than mid-export
    pytz.timezone(config.timezone)
    return config


def _events_from_saved_pages(args, config: PortalConfig):
    timetable_path = Path(args.timetable_html)
    if not timetable_path.exists():
        raise FileNotFoundError(f"--timetable-html not found: {timetable_path}")
    timetable = parse_timetable(timetable_path.read_text(encoding="utf-8", errors="ignore"))

    planner_html = PLANNER_PLACEHOLDER_HTML
    if args.planner_html:
        planner_path = Path(args.planner_html)
        if not planner_path.exists():
            raise FileNotFoundError(f"--planner-html not found: {planner_path}")
        planner_html = planner_path.read_text(encoding="utf-8", errors="ignore")
    planner = parse_planner_html(planner_html)
    return merge_schedule(timetable, planner, config.timezone)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="srm-calendar-export",
        description=(
            "Export your SRM Academia timetable to ICS / CSV / JSON.\n"
            "- Login mode: sign in with --username (password from $SRM_PASSWORD or a prompt).\n"
            "- Saved-page mode: parse --timetable-html / --planner-html saved from the browser."
        ),
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    parser.add_argument("--version", action="version", version=f"%(prog)s {__version__}")
    parser.add_argument(
        "-o",
        "--output",
        default="srm_timetable",
        help="Output path (without extension). Default: srm_timetable",
    )
    parser.add_argument(
        "-f",
        "--format",
        choices=["ics", "csv", "json"],
        default="ics",
        help="Export format. Default: ics",
    )
    mode = parser.add_mutually_exclusive_group()
    mode.add_argument(
        "-u",
        "--username",
        help="Academia login e-mail / NetID. Signs in over HTTP and fetches both pages.",
    )
    mode.add_argument(
        "--timetable-html",
        metavar="HTML_PATH",
        help="Use a saved 'My Time Table' page instead of signing in.",
    )
    parser.add_argument(
        "--planner-html",
        metavar="HTML_PATH",
        help="(Saved-page mode) Saved 'Academic Planner' page. Without it no dated events are produced.",
    )
    parser.add_argument(
        "--validate",
        action="store_true",
        help="(Login mode) Only check that the credentials work, then sign out.",
    )
    parser.add_argument(
        "--timetable-year-offset",
        type=int,
        metavar="N",
        help="Years to subtract from the current year for the My_Time_Table_<year> page. "
        "Default: $SRM_TIMETABLE_YEAR_OFFSET or 2.",
    )
    parser.add_argument(
        "--timezone",
        help="Timezone for event times. Default: $SRM_TIMEZONE or Asia/Kolkata.",
    )
    parser.add_argument("-v", "--verbose", action="store_true", help="Debug logging.")
    return parser


def main(argv: list[str] | None = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format="%(asctime)s - %(levelname)s - %(name)s - %(message)s",
    )

    if not (args.username or args.timetable_html):
        print(
            "No mode specified. Use --username to sign in to Academia "
            "or --timetable-html for a saved timetable page.",
            file=sys.stderr,
        )
        return 1

    try:
        config = _build_config(args)
    except (ValueError, pytz.UnknownTimeZoneError) as e:
        print(f"Error: invalid setting (check SRM_* variables and options): {e}", file=sys.stderr)
        return 1

    try:
        if args.timetable_html:
            events = _events_from_saved_pages(args, config)
        else:
            password = _read_password(args)
            if args.validate:
                validate_credentials(args.username, password, config)
                print(f"Credentials for {args.username} are valid.")
                return 0
            print("Signing in and fetching timetable...")
            events = collect_class_events(args.username, password, config)
    except AutomationBlocked as e:
        print(f"Error: {e} Try again later or from another network.", file=sys.stderr)
        return 1
    except InvalidCredentials as e:
        print(f"Error: login failed: {e}", file=sys.stderr)
        return 1
    except (CalendarExportError, OSError) as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1

    ext = {"ics": ".ics", "csv": ".csv", "json": ".json"}[args.format]
    out_path = Path(args.output).with_suffix(ext) if Path(args.output).suffix else Path(args.output + ext)
    export(events, out_path, args.format, config.timezone)
    print(f"Exported {len(events)} class event(s) to {out_path}")
    return 0


if __name__ == "__main__":
    sys.exit(main())
