from __future__ import annotations

import argparse
import json
import os
import sys
from dataclasses import asdict
from datetime import date
from pathlib import Path
from typing import Any

from talent_desk import __version__ as TOOL_VERSION
from talent_desk.contracts import build_contract, build_run_summary
from talent_desk.decoder import encode_table
from talent_desk.lessons import LESSON_FIELDS, add_lesson, delete_lesson, generate_demo_lessons, sorted_lessons
from talent_desk.loader import import_file
from talent_desk.metrics import TALENT_SORT_KEYS, dashboard_summary, sort_talents
from talent_desk.normalization import convert_cell
from talent_desk.roster import (
    add_talent,
    delete_talent,
    generate_demo_roster,
    load_company_sales,
    load_lessons,
    load_roster,
    save_company_sales,
    save_lessons,
    save_roster,
    set_evaluation,
    update_talent,
)
from talent_desk.shared import IMPORT_KINDS, ImportFailure, ImportResult
from talent_desk.workbook import SHEET_NAMES, write_roster_workbook

DEFAULT_DATA_DIR = Path("talent-desk-data")

EXIT_SUCCESS = 0
EXIT_COMMAND_ERROR = 1
EXIT_IMPORT_FAILED = 2
EXIT_IMPORT_REJECTED = 3


class CliError(Exception):
    def __init__(self, message: str, code: int = EXIT_COMMAND_ERROR) -> None:
        super().__init__(message)
        self.code = code


class TalentDeskArgumentParser(argparse.ArgumentParser):
    def error(self, message: str) -> None:
        raise CliError(message, EXIT_COMMAND_ERROR)


def eprint(message: str) -> None:
    print(message, file=sys.stderr)


def emit_human(message: str, *, quiet: bool = False) -> None:
    if not quiet:
        eprint(message)


def json_dumps(payload: Any) -> str:
    return json.dumps(payload, indent=2, ensure_ascii=False, sort_keys=True)


def maybe_emit_json_stdout(payload: Any, enabled: bool) -> None:
    if enabled:
        print(json_dumps(payload))


def reference_today() -> date:
    override = os.environ.get("TALENT_DESK_TODAY")
    if override:
        try:
            return date.fromisoformat(override)
        except ValueError as exc:
            raise CliError(f"TALENT_DESK_TODAY must be an ISO date, got {override!r}") from exc
    return date.today()


def roster_path(args: argparse.Namespace) -> Path:
    if getattr(args, "roster", None):
        return Path(args.roster)
    return Path(os.environ.get("TALENT_DESK_ROSTER") or DEFAULT_DATA_DIR / "roster.json")


def sales_path(args: argparse.Namespace) -> Path:
    if getattr(args, "sales", None):
        return Path(args.sales)
    return Path(os.environ.get("TALENT_DESK_SALES") or DEFAULT_DATA_DIR / "company_sales.json")


def lessons_path(args: argparse.Namespace) -> Path:
    if getattr(args, "lessons", None):
        return Path(args.lessons)
    return Path(os.environ.get("TALENT_DESK_LESSONS") or DEFAULT_DATA_DIR / "lessons.json")


def classify_exception(exc: Exception) -> int:
    if isinstance(exc, CliError):
        return exc.code
    if isinstance(exc, ImportFailure):
        return EXIT_IMPORT_FAILED
    return EXIT_COMMAND_ERROR


def rejected_rows_path(input_path: Path) -> Path:
    return input_path.with_name(f"{input_path.stem}.rejected.csv")


def render_import_text(result: ImportResult, input_path: Path) -> str:
    lines = [
        "talent-desk import",
        f"Input: {input_path}",
        f"Kind: {result.kind}",
        f"Encoding: {result.encoding or '[unknown]'}",
        f"Header row: {result.header_index + 1}",
    ]
    if result.divisor is not None:
        lines.append(f"Months elapsed: {result.divisor}")
    if result.sales is not None:
        series = result.normalized[0]["monthly_sales"]
        lines.append(f"Monthly totals: {', '.join(f'{v:,}' for v in series)}")
        lines.append(f"Year total: {sum(series):,}")
    else:
        lines.extend(
            [
                f"Imported rows: {result.stats.get('imported_rows', 0)}",
                f"Updated talents: {result.stats.get('updated', 0)}",
                f"New talents: {result.stats.get('created', 0)}",
                f"Rejected rows: {result.stats.get('rejected_rows', 0)}",
            ]
        )
    if result.warnings:
        lines.append("Warnings:")
        lines.extend(f"- {warning}" for warning in result.warnings)
    return "\n".join(lines) + "\n"


def run_import_command(args: argparse.Namespace) -> int:
    input_path = Path(args.input)
    if not input_path.exists():
        eprint(f"File not found: {input_path}")
        return EXIT_COMMAND_ERROR

    kind = IMPORT_KINDS[args.kind]
    r_path, s_path = roster_path(args), sales_path(args)
    records = load_roster(r_path) if kind.target == "talents" else None
    sales = load_company_sales(s_path) if kind.target == "company_sales" else None

    emit_human(f"Importing {input_path.name} as {kind.description}...", quiet=args.quiet)
    result = import_file(
        input_path,
        kind.name,
        records=records,
        sales=sales,
        encoding=args.encoding,
        fallback_encoding=args.fallback_encoding,
        today=reference_today(),
    )

    outputs: list[Path] = []
    if not args.dry_run:
        if result.records is not None:
            save_roster(r_path, result.records)
            outputs.append(r_path)
        if result.sales is not None:
            save_company_sales(s_path, result.sales)
            outputs.append(s_path)
        if result.rejected and args.write_rejected:
            reject_path = rejected_rows_path(input_path)
            reject_path.write_text(
                encode_table([["row", "name", "reason"]] + [
                    [str(item.row_num), item.name, item.reason] for item in result.rejected
                ]),
                encoding="utf-8",
            )
            outputs.append(reject_path)

    payload = {
        "contract": build_contract("talent_desk.import"),
        "tool_version": TOOL_VERSION,
        "kind": result.kind,
        "encoding": result.encoding,
        "header_row": result.header_index + 1,
        "divisor": result.divisor,
        "column_map": result.column_map,
        "normalized": result.normalized,
        "rejected": [asdict(item) for item in result.rejected],
        "dry_run": args.dry_run,
        "run_summary": build_run_summary(
            command="import",
            input_path=input_path,
            output_paths=outputs,
            metrics=result.stats,
            warnings=result.warnings,
        ),
    }
    if args.json:
        maybe_emit_json_stdout(payload, True)
    else:
        emit_human(render_import_text(result, input_path).rstrip("\n"), quiet=args.quiet)
        for path in outputs:
            emit_human(f"Written: {path}", quiet=args.quiet)

    if result.rejected and args.fail_on_rejected:
        return EXIT_IMPORT_REJECTED
    return EXIT_SUCCESS


def render_summary_text(summary: dict[str, Any]) -> str:
    company = summary["company_sales"]
    lines = [
        "talent-desk summary",
        f"As of: {summary['as_of']}",
        f"Active talents: {summary['talents_active']} / {summary['talents_total']}",
        f"Company sales (current): {company['current_total']:,}",
        f"Company sales (previous): {company['previous_total']:,}",
        f"Growth: {company['growth_percent']}%",
    ]
    if summary["renewal_alerts"]:
        lines.append("Contract renewals due:")
        lines.extend(f"- {item['name']} ({item['contract_end_date']})" for item in summary["renewal_alerts"])
    if summary["upcoming_birthdays"]:
        lines.append("Birthdays this week:")
        lines.extend(f"- {item['name']} ({item['birth_date']})" for item in summary["upcoming_birthdays"])
    if summary["top_talents"]:
        lines.append("Top talents by sales:")
        lines.extend(
            f"{rank}. {item['name']}: {item['total_sales']:,} (avg {item['monthly_average']:,}/month)"
            for rank, item in enumerate(summary["top_talents"], start=1)
        )
    return "\n".join(lines) + "\n"


def run_summary(args: argparse.Namespace) -> int:
    records = load_roster(roster_path(args))
    sales = load_company_sales(sales_path(args))
    summary = dashboard_summary(records, sales, reference_today())
    if args.json:
        payload = {"contract": build_contract("talent_desk.summary"), "tool_version": TOOL_VERSION, **summary}
        maybe_emit_json_stdout(payload, True)
    else:
        print(render_summary_text(summary), end="")
    return EXIT_SUCCESS


def run_export(args: argparse.Namespace) -> int:
    output_path = Path(args.output)
    if output_path.suffix.lower() != ".xlsx":
        raise CliError("Export output must be an .xlsx path.", EXIT_COMMAND_ERROR)
    if output_path.exists() and not args.force:
        raise CliError(f"Refusing to overwrite existing output: {output_path}", EXIT_COMMAND_ERROR)
    records = load_roster(roster_path(args))
    sales = load_company_sales(sales_path(args))
    today = reference_today()
    output = write_roster_workbook(records, sales, output_path, today)
    if args.json:
        metrics = {"talents": len(records), "current_total": sum(sales["current"]), "previous_total": sum(sales["previous"])}
        payload = {
            "contract": build_contract("talent_desk.export"),
            "tool_version": TOOL_VERSION,
            "output_file": str(output),
            "sheets": list(SHEET_NAMES),
            "as_of": today.isoformat(),
            "run_summary": build_run_summary(command="export", output_paths=[output], metrics=metrics),
        }
        maybe_emit_json_stdout(payload, True)
    else:
        emit_human(f"Workbook written: {output_path}", quiet=args.quiet)
    return EXIT_SUCCESS


def run_demo(args: argparse.Namespace) -> int:
    r_path, l_path = roster_path(args), lessons_path(args)
    for path in (r_path, l_path):
        if path.exists() and not args.force:
            raise CliError(f"Demo data already exists: {path} (use --force to replace it)", EXIT_COMMAND_ERROR)
    today = reference_today()
    roster = generate_demo_roster(today, seed=args.seed)
    lessons = generate_demo_lessons(today)
    save_roster(r_path, roster)
    save_lessons(l_path, lessons)
    emit_human(f"Demo roster written: {r_path} ({len(roster)} talents)", quiet=args.quiet)
    emit_human(f"Demo lessons written: {l_path} ({len(lessons)} lessons)", quiet=args.quiet)
    return EXIT_SUCCESS


def parse_assignments(pairs: list[str] | None) -> dict[str, Any]:
    """``FIELD=VALUE`` pairs to typed talent fields, converted the way imports convert cells."""
    fields: dict[str, Any] = {}
    for pair in pairs or []:
        key, sep, value = pair.partition("=")
        key = key.strip()
        if not sep or not key:
            raise CliError(f"Expected FIELD=VALUE, got {pair!r}", EXIT_COMMAND_ERROR)
        fields[key] = convert_cell(key, value)
    return fields


def render_talent_line(record: dict[str, Any]) -> str:
    return (
        f"{record.get('id', '')}  {record.get('name', '')}  "
        f"[{record.get('status') or 'active'}]  rating {record.get('rating') or 0}  "
        f"sales {int(record.get('total_sales') or 0):,}"
    )


def run_talent(args: argparse.Namespace) -> int:
    path = roster_path(args)
    records = load_roster(path)
    today = reference_today()

    if args.talent_command == "list":
        ordered = sort_talents(records, args.sort)
        if args.json:
            payload = {"contract": build_contract("talent_desk.talents"), "tool_version": TOOL_VERSION, "talents": ordered}
            maybe_emit_json_stdout(payload, True)
        else:
            for record in ordered:
                print(render_talent_line(record))
        return EXIT_SUCCESS

    if args.talent_command == "add":
        fields = parse_assignments(args.set)
        fields["name"] = args.name
        updated, record = add_talent(records, today=today, **fields)
        message = f"Talent added: {record['name']} ({record['id']})"
    elif args.talent_command == "update":
        fields = parse_assignments(args.set)
        if not fields:
            raise CliError("Nothing to update: pass --set FIELD=VALUE.", EXIT_COMMAND_ERROR)
        updated = update_talent(records, args.id, today=today, **fields)
        message = f"Talent updated: {args.id} ({', '.join(sorted(fields))})"
    elif args.talent_command == "delete":
        updated = delete_talent(records, args.id)
        message = f"Talent deleted: {args.id}"
    else:
        updated = set_evaluation(records, args.id, args.rating, args.note)
        message = f"Evaluation saved: {args.id} (rating {args.rating})"

    save_roster(path, updated)
    emit_human(message, quiet=args.quiet)
    return EXIT_SUCCESS


def render_lesson_line(lesson: dict[str, Any]) -> str:
    hours = f"{lesson.get('start_time') or '--:--'}-{lesson.get('end_time') or '--:--'}"
    return (
        f"{lesson.get('date', '')} {hours}  {lesson.get('title', '')}  "
        f"{lesson.get('location', '')}  {lesson.get('instructor', '')}  ({lesson.get('id', '')})"
    )


def run_lesson(args: argparse.Namespace) -> int:
    path = lessons_path(args)
    lessons = load_lessons(path)

    if args.lesson_command == "list":
        ordered = sorted_lessons(lessons, reference_today() if args.upcoming else None)
        if args.json:
            payload = {"contract": build_contract("talent_desk.lessons"), "tool_version": TOOL_VERSION, "lessons": ordered}
            maybe_emit_json_stdout(payload, True)
        else:
            for lesson in ordered:
                print(render_lesson_line(lesson))
        return EXIT_SUCCESS

    if args.lesson_command == "add":
        updated, lesson = add_lesson(lessons, **{key: getattr(args, key) for key in LESSON_FIELDS})
        message = f"Lesson added: {lesson['title']} on {lesson['date']} ({lesson['id']})"
    else:
        updated = delete_lesson(lessons, args.id)
        message = f"Lesson deleted: {args.id}"

    save_lessons(path, updated)
    emit_human(message, quiet=args.quiet)
    return EXIT_SUCCESS


EXPLAIN_CODES = {
    "header_not_found": {
        "description": "No header row was found in the first 30 rows of the file.",
        "evidence": "Sales imports need at least 3 month labels (10月, 11月 ... or Oct, Nov ...) in one row; "
        "profile imports need a cell that reads exactly as a name label such as 氏名.",
        "remedy": "Check that the file is the right export and that the header sits near the top.",
    },
    "no_data_rows": {
        "description": "A header was found but no usable rows follow it.",
        "evidence": "Every row below the header had a blank name, looked like a label/note row, "
        "or (company sales) carried no numbers.",
        "remedy": "Make sure talent names sit in the name column and note rows are removed.",
    },
    "invalid_divisor": {
        "description": "Cell A1 of a talent sales sheet must hold the months elapsed in the fiscal year.",
        "evidence": "A1 was empty, not a number, or 0.",
        "remedy": "Enter the number of months elapsed (1-12) in A1 and import again.",
    },
    "encoding_mismatch": {
        "description": "No header was found with either text encoding.",
        "evidence": "Both the Shift_JIS and UTF-8 readings of the file failed to locate the header row.",
        "remedy": "Re-save the file as CSV (UTF-8 or Shift_JIS), or pass --encoding explicitly.",
    },
}


def run_explain(args: argparse.Namespace) -> int:
    entry = EXPLAIN_CODES.get(args.code)
    if entry is None:
        eprint(f"Unknown code: {args.code}. Known: {', '.join(sorted(EXPLAIN_CODES))}")
        return EXIT_COMMAND_ERROR
    payload = {"code": args.code, **entry}
    if args.json:
        maybe_emit_json_stdout(payload, True)
    else:
        print(
            "\n".join(
                [
                    f"Code: {args.code}",
                    f"What it means: {entry['description']}",
                    f"What triggers it: {entry['evidence']}",
                    f"How to fix it: {entry['remedy']}",
                ]
            )
        )
    return EXIT_SUCCESS


def run_version() -> int:
    print(TOOL_VERSION)
    return EXIT_SUCCESS


def _add_store_args(parser: argparse.ArgumentParser) -> None:
    parser.add_argument("--roster", help="Roster JSON path (default: $TALENT_DESK_ROSTER or talent-desk-data/roster.json)")
    parser.add_argument("--sales", help="Company sales JSON path (default: $TALENT_DESK_SALES or talent-desk-data/company_sales.json)")


def build_parser() -> argparse.ArgumentParser:
    parser = TalentDeskArgumentParser(prog="talent-desk", description="Talent roster imports and sales summaries.")
    subparsers = parser.add_subparsers(dest="command", required=True)

    imp = subparsers.add_parser("import", help="Import a CSV export into the roster or company sales.")
    imp.add_argument("kind", choices=sorted(IMPORT_KINDS), help="Import kind")
    imp.add_argument("input", help="CSV file path")
    _add_store_args(imp)
    imp.add_argument("--encoding", help="Primary text encoding (default: detected, else cp932)")
    imp.add_argument("--fallback-encoding", dest="fallback_encoding", help="Encoding tried when no header is found")
    imp.add_argument("--json", action="store_true", help="Write machine JSON to stdout")
    imp.add_argument("--dry-run", action="store_true", help="Parse and reconcile without saving")
    imp.add_argument("--write-rejected", action="store_true", help="Write skipped rows next to the input as <name>.rejected.csv")
    imp.add_argument("--fail-on-rejected", action="store_true", help="Return exit code 3 when rows were skipped")
    imp.add_argument("-q", "--quiet", action="store_true", help="Minimal human logs")

    summary = subparsers.add_parser("summary", help="Print dashboard metrics for the roster.")
    _add_store_args(summary)
    summary.add_argument("--json", action="store_true", help="Write machine JSON to stdout")

    export = subparsers.add_parser("export", help="Write the roster and company sales to an .xlsx workbook.")
    export.add_argument("output", help="Workbook output path")
    _add_store_args(export)
    export.add_argument("--force", action="store_true", help="Overwrite an existing workbook")
    export.add_argument("--json", action="store_true", help="Write machine JSON to stdout")
    export.add_argument("-q", "--quiet", action="store_true", help="Minimal human logs")

    demo = subparsers.add_parser("demo", help="Write an offline demo roster and lesson schedule.")
    demo.add_argument("--roster", help="Roster JSON path")
    demo.add_argument("--lessons", help="Lessons JSON path")
    demo.add_argument("--seed", type=int, default=0, help="Random seed for demo sales figures")
    demo.add_argument("--force", action="store_true", help="Replace existing demo files")
    demo.add_argument("-q", "--quiet", action="store_true", help="Minimal human logs")

    talent = subparsers.add_parser("talent", help="List, add, edit, delete or evaluate talents.")
    talent_sub = talent.add_subparsers(dest="talent_command", required=True)
    t_list = talent_sub.add_parser("list", help="List talents.")
    t_list.add_argument("--sort", choices=TALENT_SORT_KEYS, default="name", help="Order by name, rating or sales")
    t_list.add_argument("--json", action="store_true", help="Write machine JSON to stdout")
    t_add = talent_sub.add_parser("add", help="Add a talent.")
    t_add.add_argument("name", help="Talent name")
    t_update = talent_sub.add_parser("update", help="Edit fields of a talent.")
    t_update.add_argument("id", help="Talent id")
    for sub in (t_add, t_update):
        sub.add_argument("--set", action="append", metavar="FIELD=VALUE", help="Field value, repeatable (e.g. --set birth_date=2000/6/15)")
    t_delete = talent_sub.add_parser("delete", help="Delete a talent.")
    t_delete.add_argument("id", help="Talent id")
    t_eval = talent_sub.add_parser("evaluate", help="Set a talent's rating and evaluation note.")
    t_eval.add_argument("id", help="Talent id")
    t_eval.add_argument("--rating", type=int, required=True, help="Rating 0-5")
    t_eval.add_argument("--note", help="Evaluation note")
    for sub in (t_list, t_add, t_update, t_delete, t_eval):
        sub.add_argument("--roster", help="Roster JSON path (default: $TALENT_DESK_ROSTER or talent-desk-data/roster.json)")
        sub.add_argument("-q", "--quiet", action="store_true", help="Minimal human logs")

    lesson = subparsers.add_parser("lesson", help="List, add or delete scheduled lessons.")
    lesson_sub = lesson.add_subparsers(dest="lesson_command", required=True)
    l_list = lesson_sub.add_parser("list", help="List lessons by date.")
    l_list.add_argument("--upcoming", action="store_true", help="Only lessons from today on")
    l_list.add_argument("--json", action="store_true", help="Write machine JSON to stdout")
    l_add = lesson_sub.add_parser("add", help="Schedule a lesson.")
    l_add.add_argument("--title", required=True, help="Lesson title")
    l_add.add_argument("--date", required=True, help="Date (YYYY-MM-DD or YYYY/M/D)")
    l_add.add_argument("--start", dest="start_time", help="Start time HH:MM")
    l_add.add_argument("--end", dest="end_time", help="End time HH:MM")
    l_add.add_argument("--type", help="Lesson type, e.g. Acting")
    l_add.add_argument("--location", help="Studio or venue")
    l_add.add_argument("--instructor", help="Instructor name")
    l_delete = lesson_sub.add_parser("delete", help="Delete a lesson.")
    l_delete.add_argument("id", help="Lesson id")
    for sub in (l_list, l_add, l_delete):
        sub.add_argument("--lessons", help="Lessons JSON path (default: $TALENT_DESK_LESSONS or talent-desk-data/lessons.json)")
        sub.add_argument("-q", "--quiet", action="store_true", help="Minimal human logs")

    explain = subparsers.add_parser("explain", help="Explain an import failure code.")
    explain.add_argument("code", help="Failure code, e.g. invalid_divisor")
    explain.add_argument("--json", action="store_true", help="Write machine JSON to stdout")

    subparsers.add_parser("version", help="Print version")
    return parser


def main(argv: list[str] | None = None) -> int:
    try:
        parser = build_parser()
        args = parser.parse_args(argv)
        if args.command == "import":
            return run_import_command(args)
        if args.command == "summary":
            return run_summary(args)
        if args.command == "export":
            return run_export(args)
        if args.command == "demo":
            return run_demo(args)
        if args.command == "talent":
            return run_talent(args)
        if args.command == "lesson":
            return run_lesson(args)
        if args.command == "explain":
            return run_explain(args)
        if args.command == "version":
            return run_version()
        raise CliError(f"Unknown command: {args.command}", EXIT_COMMAND_ERROR)
    except (CliError, ImportFailure, ValueError, FileNotFoundError) as exc:
        eprint(str(exc))
        return classify_exception(exc)


if __name__ == "__main__":
    raise SystemExit(main())
