import unittest
from datetime import date

from talent_desk.normalization import (
    calculate_age,
    extract_series,
    is_admissible,
    normalize_date,
    normalize_rows,
    normalize_text,
    parse_amount,
    read_divisor,
)
from talent_desk.shared import IMPORT_KINDS, InvalidDivisor, NoDataRows


class AmountTests(unittest.TestCase):
    def test_currency_strings(self):
        self.assertEqual(parse_amount("¥1,234,567"), 1234567)
        self.assertEqual(parse_amount("8,000円"), 8000)
        self.assertEqual(parse_amount('"1,200"'), 1200)
        self.assertEqual(parse_amount("  42 "), 42)

    def test_unparseable_amounts_default_to_zero(self):
        self.assertEqual(parse_amount(""), 0)
        self.assertEqual(parse_amount("abc"), 0)
        self.assertEqual(parse_amount(None), 0)

    def test_amounts_are_never_negative(self):
        self.assertEqual(parse_amount("-500"), 0)

    def test_decimal_keeps_integral_part(self):
        self.assertEqual(parse_amount("1234.5"), 1234)


class DateTests(unittest.TestCase):
    def test_slash_and_dash_dates_are_zero_padded(self):
        self.assertEqual(normalize_date("2024/3/5"), "2024-03-05")
        self.assertEqual(normalize_date("2024-3-5"), "2024-03-05")
        self.assertEqual(normalize_date(" 2024/12/31 "), "2024-12-31")

    def test_non_dates_pass_through(self):
        self.assertEqual(normalize_date("not a date"), "not a date")
        self.assertEqual(normalize_date(""), "")

    def test_age_turns_over_on_birthday(self):
        self.assertEqual(calculate_age("2000-06-15", date(2024, 6, 14)), 23)
        self.assertEqual(calculate_age("2000-06-15", date(2024, 6, 15)), 24)
        self.assertEqual(calculate_age("2000/6/15", date(2024, 12, 1)), 24)

    def test_age_is_empty_for_missing_birth_date(self):
        self.assertIsNone(calculate_age("", date(2024, 1, 1)))
        self.assertIsNone(calculate_age("unknown", date(2024, 1, 1)))


class TextAndAdmissionTests(unittest.TestCase):
    def test_empty_text_takes_field_default(self):
        self.assertEqual(normalize_text("account_type", ""), "普通")
        self.assertEqual(normalize_text("evaluation_note", "  "), "なし")
        self.assertEqual(normalize_text("email", ""), "")
        self.assertEqual(normalize_text("email", "  a@b.jp "), "a@b.jp")

    def test_label_rows_are_not_admitted(self):
        self.assertFalse(is_admissible("備考："))
        self.assertFalse(is_admissible("Note: totals"))
        self.assertFalse(is_admissible("   "))
        self.assertTrue(is_admissible("山田"))

    def test_normalize_rows_skips_blank_and_label_rows(self):
        rows = [
            ["氏名", "生年月日", "口座種別"],
            ["山田太郎", "2000/6/15", ""],
            ["", "2001/1/1", "当座"],
            ["備考：", "x", "y"],
            ["", "", ""],
        ]
        column_map = {"name": 0, "birth_date": 1, "account_type": 2}
        records, rejected = normalize_rows(rows, 0, column_map, today=date(2024, 6, 14))
        self.assertEqual(
            records,
            [{"name": "山田太郎", "birth_date": "2000-06-15", "account_type": "普通", "age": 23}],
        )
        self.assertEqual([item.row_num for item in rejected], [3, 4])
        self.assertEqual(rejected[1].reason, "Label or note row (contains a colon)")


class DivisorTests(unittest.TestCase):
    kind = IMPORT_KINDS["talent-sales"]

    def test_valid_divisor(self):
        self.assertEqual(read_divisor([[" 3 "], ["10月"]], self.kind), 3)

    def test_missing_or_zero_divisor_is_rejected(self):
        for rows in ([], [[""]], [["0"]], [["abc"]]):
            with self.subTest(rows=rows):
                with self.assertRaises(InvalidDivisor):
                    read_divisor(rows, self.kind)


class SeriesTests(unittest.TestCase):
    kind = IMPORT_KINDS["company-sales/current"]

    def setUp(self):
        self.column_map = {f"month_{i}": i + 1 for i in range(12)}

    def test_revenue_row_preferred_over_cost_of_sales(self):
        rows = [
            ["科目"] + ["m"] * 12,
            ["売上原価"] + ["5"] * 12,
            ["売上高", "¥1,000", "2,000"] + ["0"] * 10,
        ]
        series = extract_series(rows, 0, self.column_map, self.kind)
        self.assertEqual(series, [1000, 2000] + [0] * 10)

    def test_partial_sales_label_used_without_exact_label(self):
        rows = [
            ["科目"] + ["m"] * 12,
            ["memo", "9"],
            ["売上（税抜）"] + ["7"] * 12,
        ]
        series = extract_series(rows, 0, self.column_map, self.kind)
        self.assertEqual(series, [7] * 12)

    def test_first_numeric_row_is_fallback(self):
        rows = [
            ["", "Oct"],
            ["memo"],
            ["Revenue", "100", "", "300"],
        ]
        series = extract_series(rows, 0, self.column_map, self.kind)
        self.assertEqual(series, [100, 0, 300] + [0] * 9)

    def test_no_sales_row_raises(self):
        with self.assertRaises(NoDataRows):
            extract_series([["", "Oct"], ["memo", "n/a"]], 0, self.column_map, self.kind)


if __name__ == "__main__":
    unittest.main()
