from __future__ import annotations

import json
import os
import subprocess
import sys
import tempfile
import unittest
from pathlib import Path

import openpyxl


ROOT = Path(__file__).resolve().parents[1]
CLI = [sys.executable, "-m", "talent_desk.cli"]
FIXED_TODAY = "2024-06-10"

SALES_CSV = (
    "3\r\n"
    "10月,11月,12月,1月,2月,3月,4月,5月,6月,7月,8月,9月,,合計\r\n"
    "山田太郎,100,200,300,0,0,0,0,0,0,0,0,0,600\r\n"
    "備考：速報値,,,,,,,,,,,,,\r\n"
)


def run_cli(*args: str, env: dict[str, str] | None = None) -> subprocess.CompletedProcess[str]:
    merged_env = dict(os.environ)
    merged_env["TALENT_DESK_TODAY"] = FIXED_TODAY
    merged_env["PYTHONIOENCODING"] = "utf-8"
    if env:
        merged_env.update(env)
    return subprocess.run(
        [*CLI, *args],
        cwd=ROOT,
        capture_output=True,
        text=True,
        encoding="utf-8",
        env=merged_env,
    )


class TalentDeskCliTests(unittest.TestCase):
    def setUp(self):
        self._tmp = tempfile.TemporaryDirectory()
        self.tmpdir = Path(self._tmp.name)
        self.roster = self.tmpdir / "roster.json"
        self.sales = self.tmpdir / "sales.json"
        self.lessons = self.tmpdir / "lessons.json"
        self.addCleanup(self._tmp.cleanup)

    def write_csv(self, name: str, text: str, encoding: str = "cp932") -> Path:
        path = self.tmpdir / name
        path.write_bytes(text.encode(encoding))
        return path

    def test_version_prints_package_version(self):
        proc = run_cli("version")
        self.assertEqual(proc.returncode, 0, proc.stderr)
        self.assertEqual(proc.stdout.strip(), "0.1.0")

    def test_import_talent_sales_json_stdout_contains_only_json(self):
        csv_path = self.write_csv("sales.csv", SALES_CSV)
        proc = run_cli("import", "talent-sales", str(csv_path), "--roster", str(self.roster), "--json")
        self.assertEqual(proc.returncode, 0, proc.stderr)
        payload = json.loads(proc.stdout)
        self.assertEqual(payload["contract"]["name"], "talent_desk.import")
        self.assertEqual(payload["encoding"], "cp932")
        self.assertEqual(payload["normalized"][0]["average_sales"], 200)
        self.assertEqual(payload["rejected"][0]["row_num"], 4)
        self.assertEqual(payload["run_summary"]["metrics"]["created"], 1)

        roster = json.loads(self.roster.read_text(encoding="utf-8"))
        self.assertEqual(roster[0]["name"], "山田太郎")
        self.assertEqual(roster[0]["monthly_sales"][:3], [100, 200, 300])

    def test_import_human_output_goes_to_stderr(self):
        csv_path = self.write_csv("sales.csv", SALES_CSV)
        proc = run_cli("import", "talent-sales", str(csv_path), "--roster", str(self.roster))
        self.assertEqual(proc.returncode, 0, proc.stderr)
        self.assertEqual(proc.stdout, "")
        self.assertIn("New talents: 1", proc.stderr)
        self.assertIn("Row 4 skipped", proc.stderr)

    def test_dry_run_does_not_write_roster(self):
        csv_path = self.write_csv("sales.csv", SALES_CSV)
        proc = run_cli("import", "talent-sales", str(csv_path), "--roster", str(self.roster), "--dry-run", "-q")
        self.assertEqual(proc.returncode, 0, proc.stderr)
        self.assertFalse(self.roster.exists())

    def test_rejected_rows_can_fail_the_run_and_be_written(self):
        csv_path = self.write_csv("sales.csv", SALES_CSV)
        proc = run_cli(
            "import",
            "talent-sales",
            str(csv_path),
            "--roster",
            str(self.roster),
            "--write-rejected",
            "--fail-on-rejected",
            "-q",
        )
        self.assertEqual(proc.returncode, 3, proc.stderr)
        rejected = (self.tmpdir / "sales.rejected.csv").read_text(encoding="utf-8")
        self.assertIn("colon", rejected)

    def test_invalid_divisor_returns_exit_2_and_keeps_roster(self):
        self.roster.write_text("[]", encoding="utf-8")
        csv_path = self.write_csv("sales.csv", SALES_CSV.replace("3\r\n", "\r\n", 1))
        proc = run_cli("import", "talent-sales", str(csv_path), "--roster", str(self.roster))
        self.assertEqual(proc.returncode, 2)
        self.assertIn("A1", proc.stderr)
        self.assertEqual(self.roster.read_text(encoding="utf-8"), "[]")

    def test_missing_header_returns_exit_2(self):
        csv_path = self.write_csv("notes.csv", "memo\r\nnothing here\r\n")
        proc = run_cli("import", "company-sales/current", str(csv_path), "--sales", str(self.sales))
        self.assertEqual(proc.returncode, 2)
        self.assertIn("tried encodings", proc.stderr)

    def test_company_sales_import_writes_series(self):
        text = "科目,10月,11月,12月,1月,2月,3月,4月,5月,6月,7月,8月,9月\r\n売上高," + ",".join(["1000"] * 12) + "\r\n"
        csv_path = self.write_csv("pl.csv", text, encoding="utf-8")
        proc = run_cli("import", "company-sales/previous", str(csv_path), "--sales", str(self.sales), "-q")
        self.assertEqual(proc.returncode, 0, proc.stderr)
        sales = json.loads(self.sales.read_text(encoding="utf-8"))
        self.assertEqual(sales["previous"], [1000] * 12)
        self.assertEqual(sales["current"], [0] * 12)

    def test_missing_input_returns_exit_1(self):
        proc = run_cli("import", "talent-sales", str(self.tmpdir / "missing.csv"))
        self.assertEqual(proc.returncode, 1)
        self.assertIn("File not found", proc.stderr)

    def test_unknown_kind_returns_exit_1(self):
        proc = run_cli("import", "payroll", "whatever.csv")
        self.assertEqual(proc.returncode, 1)
        self.assertIn("invalid choice", proc.stderr)

    def test_demo_then_summary_json(self):
        proc = run_cli("demo", "--roster", str(self.roster), "--lessons", str(self.lessons), "-q")
        self.assertEqual(proc.returncode, 0, proc.stderr)

        again = run_cli("demo", "--roster", str(self.roster), "--lessons", str(self.lessons))
        self.assertEqual(again.returncode, 1)
        self.assertIn("already exists", again.stderr)

        proc = run_cli("summary", "--roster", str(self.roster), "--sales", str(self.sales), "--json")
        self.assertEqual(proc.returncode, 0, proc.stderr)
        summary = json.loads(proc.stdout)
        self.assertEqual(summary["contract"]["name"], "talent_desk.summary")
        self.assertEqual(summary["as_of"], FIXED_TODAY)
        self.assertEqual(summary["talents_active"], 15)
        self.assertEqual(len(summary["upcoming_birthdays"]), 2)

    def test_summary_reads_roster_from_environment(self):
        run_cli("demo", "--roster", str(self.roster), "--lessons", str(self.lessons), "-q")
        proc = run_cli("summary", env={"TALENT_DESK_ROSTER": str(self.roster), "TALENT_DESK_SALES": str(self.sales)})
        self.assertEqual(proc.returncode, 0, proc.stderr)
        self.assertIn("Active talents: 15 / 15", proc.stdout)
        self.assertIn("Birthdays this week:", proc.stdout)

    def test_export_writes_workbook_and_refuses_overwrite(self):
        run_cli("demo", "--roster", str(self.roster), "--lessons", str(self.lessons), "-q")
        output = self.tmpdir / "roster.xlsx"
        proc = run_cli("export", str(output), "--roster", str(self.roster), "--sales", str(self.sales), "-q")
        self.assertEqual(proc.returncode, 0, proc.stderr)
        wb = openpyxl.load_workbook(output)
        self.assertEqual(wb.sheetnames, ["Talents", "Company Sales"])
        self.assertEqual(wb["Talents"].max_row, 16)

        again = run_cli("export", str(output), "--roster", str(self.roster))
        self.assertEqual(again.returncode, 1)
        self.assertIn("Refusing to overwrite", again.stderr)

    def test_export_json_payload_has_contract(self):
        output = self.tmpdir / "roster.xlsx"
        proc = run_cli("export", str(output), "--roster", str(self.roster), "--sales", str(self.sales), "--json")
        self.assertEqual(proc.returncode, 0, proc.stderr)
        payload = json.loads(proc.stdout)
        self.assertEqual(payload["contract"]["name"], "talent_desk.export")
        self.assertEqual(payload["sheets"], ["Talents", "Company Sales"])
        self.assertEqual(payload["run_summary"]["output_files"], [str(output)])
        self.assertEqual(payload["run_summary"]["metrics"]["talents"], 0)
        self.assertTrue(output.exists())

    def load_roster_file(self) -> list[dict]:
        return json.loads(self.roster.read_text(encoding="utf-8"))

    def test_talent_add_update_evaluate_delete(self):
        roster_args = ("--roster", str(self.roster))
        proc = run_cli("talent", "add", "山田太郎", "--set", "birth_date=2000/6/15", "--set", "email=taro@example.com", *roster_args)
        self.assertEqual(proc.returncode, 0, proc.stderr)
        self.assertIn("Talent added: 山田太郎", proc.stderr)
        talent = self.load_roster_file()[0]
        self.assertEqual(talent["birth_date"], "2000-06-15")
        self.assertEqual(talent["age"], 23)
        self.assertEqual(talent["status"], "active")

        proc = run_cli("talent", "update", talent["id"], "--set", "height=170", *roster_args, "-q")
        self.assertEqual(proc.returncode, 0, proc.stderr)
        self.assertEqual(self.load_roster_file()[0]["height"], "170")

        proc = run_cli("talent", "evaluate", talent["id"], "--rating", "4", "--note", "成長中", *roster_args, "-q")
        self.assertEqual(proc.returncode, 0, proc.stderr)
        evaluated = self.load_roster_file()[0]
        self.assertEqual((evaluated["rating"], evaluated["evaluation_note"]), (4, "成長中"))

        proc = run_cli("talent", "list", "--sort", "rating", "--json", *roster_args)
        self.assertEqual(proc.returncode, 0, proc.stderr)
        payload = json.loads(proc.stdout)
        self.assertEqual(payload["contract"]["name"], "talent_desk.talents")
        self.assertEqual(payload["talents"][0]["id"], talent["id"])

        proc = run_cli("talent", "delete", talent["id"], *roster_args, "-q")
        self.assertEqual(proc.returncode, 0, proc.stderr)
        self.assertEqual(self.load_roster_file(), [])

    def test_talent_edit_errors_return_exit_1(self):
        roster_args = ("--roster", str(self.roster))
        run_cli("talent", "add", "山田太郎", *roster_args, "-q")
        talent_id = self.load_roster_file()[0]["id"]

        for args in (
            ("talent", "evaluate", talent_id, "--rating", "9"),
            ("talent", "update", talent_id, "--set", "nickname=taro"),
            ("talent", "update", talent_id, "--set", "height"),
            ("talent", "update", talent_id),
            ("talent", "delete", "missing"),
        ):
            with self.subTest(args=args):
                proc = run_cli(*args, *roster_args)
                self.assertEqual(proc.returncode, 1)
                self.assertTrue(proc.stderr.strip())
        self.assertEqual(self.load_roster_file()[0]["rating"], 0)

    def test_lesson_add_list_delete(self):
        lesson_args = ("--lessons", str(self.lessons))
        proc = run_cli(
            "lesson", "add", "--title", "ボイトレ", "--date", "2024/6/12",
            "--start", "9:30", "--end", "11:00", "--location", "第2スタジオ", *lesson_args,
        )
        self.assertEqual(proc.returncode, 0, proc.stderr)
        run_cli("lesson", "add", "--title", "演技", "--date", "2024-06-01", *lesson_args, "-q")

        proc = run_cli("lesson", "list", "--upcoming", "--json", *lesson_args)
        self.assertEqual(proc.returncode, 0, proc.stderr)
        payload = json.loads(proc.stdout)
        self.assertEqual(payload["contract"]["name"], "talent_desk.lessons")
        self.assertEqual([l["title"] for l in payload["lessons"]], ["ボイトレ"])
        lesson = payload["lessons"][0]
        self.assertEqual((lesson["date"], lesson["start_time"]), ("2024-06-12", "09:30"))

        proc = run_cli("lesson", "list", *lesson_args)
        self.assertEqual(proc.stdout.splitlines()[0].split()[0], "2024-06-01")

        proc = run_cli("lesson", "delete", lesson["id"], *lesson_args, "-q")
        self.assertEqual(proc.returncode, 0, proc.stderr)
        remaining = json.loads(self.lessons.read_text(encoding="utf-8"))
        self.assertEqual([l["title"] for l in remaining], ["演技"])

    def test_lesson_add_rejects_bad_time(self):
        proc = run_cli("lesson", "add", "--title", "演技", "--date", "2024-06-12", "--start", "25:00", "--lessons", str(self.lessons))
        self.assertEqual(proc.returncode, 1)
        self.assertIn("HH:MM", proc.stderr)
        self.assertFalse(self.lessons.exists())

    def test_demo_writes_lessons(self):
        run_cli("demo", "--roster", str(self.roster), "--lessons", str(self.lessons), "-q")
        lessons = json.loads(self.lessons.read_text(encoding="utf-8"))
        self.assertEqual(len(lessons), 5)
        self.assertEqual(lessons[0]["date"], FIXED_TODAY)

    def test_export_requires_xlsx_suffix(self):
        proc = run_cli("export", str(self.tmpdir / "roster.csv"))
        self.assertEqual(proc.returncode, 1)
        self.assertIn(".xlsx", proc.stderr)

    def test_explain_known_and_unknown_codes(self):
        proc = run_cli("explain", "invalid_divisor", "--json")
        self.assertEqual(proc.returncode, 0, proc.stderr)
        self.assertEqual(json.loads(proc.stdout)["code"], "invalid_divisor")

        proc = run_cli("explain", "nope")
        self.assertEqual(proc.returncode, 1)
        self.assertIn("Unknown code", proc.stderr)


if __name__ == "__main__":
    unittest.main()
