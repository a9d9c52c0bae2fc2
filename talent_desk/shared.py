from __future__ import annotations

import re
from dataclasses import dataclass, field
from typing import Any

HEADER_SEARCH_WINDOW = 30
MIN_KEYWORD_MATCHES = 3
RENEWAL_ALERT_MONTHS = 7
BIRTHDAY_WINDOW_DAYS = 7
TOP_TALENTS_LIMIT = 10
MAX_RATING = 5

DEFAULT_PRIMARY_ENCODING = "cp932"
DEFAULT_FALLBACK_ENCODING = "utf-8"
CHARDET_MIN_CONFIDENCE = 0.5

# Fiscal year runs October through September.
FISCAL_MONTHS = [10, 11, 12, 1, 2, 3, 4, 5, 6, 7, 8, 9]
MONTH_ABBREVIATIONS = {
    1: "Jan", 2: "Feb", 3: "Mar", 4: "Apr", 5: "May", 6: "Jun",
    7: "Jul", 8: "Aug", 9: "Sep", 10: "Oct", 11: "Nov", 12: "Dec",
}
MONTH_FIELDS = [f"month_{i}" for i in range(12)]
MONTH_LABELS = [f"{m}月" for m in FISCAL_MONTHS]

AMOUNT_STRIP_RE = re.compile(r"[,，¥￥円\"\s]")
LEADING_INT_RE = re.compile(r"^[+-]?\d+")
LABEL_ROW_RE = re.compile(r"[:：]")
SALES_ROW_RE = re.compile(r"売上|sales", re.IGNORECASE)
# Cells that name the revenue line itself; preferred over rows such as 売上原価.
SALES_ROW_LABELS = ("売上", "売上高", "売上合計", "sales", "net sales")

DATE_FIELDS = {"birth_date", "contract_date", "contract_end_date"}
AMOUNT_FIELDS = {"total_sales", "rating", *MONTH_FIELDS}

CONTACT_FIELDS = ("gender", "email", "specialty", "hobby")
PHYSICAL_FIELDS = ("height", "weight", "bust", "waist", "hip", "shoe_size")
BANK_FIELDS = ("bank_name", "branch_name", "account_type", "account_number", "account_holder")

# Substituted when an imported text cell is empty; also the starting value of
# a freshly created talent.
FIELD_DEFAULTS: dict[str, Any] = {
    "status": "active",
    "name": "",
    "gender": "",
    "email": "",
    "birth_date": "",
    "age": None,
    "contract_date": "",
    "contract_end_date": "",
    "rating": 0,
    "evaluation_note": "なし",
    "height": "",
    "weight": "",
    "bust": "",
    "waist": "",
    "hip": "",
    "shoe_size": "",
    "specialty": "無",
    "hobby": "無",
    "bank_name": "",
    "branch_name": "",
    "account_type": "普通",
    "account_number": "",
    "account_holder": "",
    "total_sales": 0,
    "average_sales": None,
}
TALENT_FIELDS = ["id", *FIELD_DEFAULTS.keys(), "monthly_sales"]


def keyword_pattern(token: str) -> re.Pattern[str]:
    """Compile a case-insensitive matcher that will not find ``1月`` inside ``11月``
    or ``Mar`` inside ``Summary``."""
    prefix = ""
    if token[:1].isdigit():
        prefix = r"(?<!\d)"
    elif token[:1].isascii() and token[:1].isalpha():
        prefix = r"(?<![A-Za-z])"
    return re.compile(prefix + re.escape(token), re.IGNORECASE)


def month_label_variants() -> list[tuple[str, tuple[str, ...]]]:
    return [
        (month_field, (f"{month}月", MONTH_ABBREVIATIONS[month]))
        for month_field, month in zip(MONTH_FIELDS, FISCAL_MONTHS)
    ]


MONTH_KEYWORDS = tuple(MONTH_LABELS) + tuple(MONTH_ABBREVIATIONS[m] for m in FISCAL_MONTHS)

NAME_LABELS = ("氏名", "名前", "タレント名", "Name")
TOTAL_SALES_LABELS = ("合計", "年間売上", "売上合計", "Total")

PROFILE_LABELS: list[tuple[str, tuple[str, ...]]] = [
    ("name", NAME_LABELS),
    ("status", ("ステータス", "Status")),
    ("gender", ("性別", "Gender")),
    ("email", ("メール", "Email", "E-mail")),
    ("birth_date", ("生年月日", "誕生日", "Birth")),
    ("contract_date", ("契約開始", "契約日", "Contract Start")),
    ("contract_end_date", ("契約終了", "契約満了", "Contract End")),
    ("rating", ("評価点", "評価ランク", "Rating")),
    ("evaluation_note", ("評価コメント", "評価メモ", "Evaluation Note")),
    ("height", ("身長", "Height")),
    ("weight", ("体重", "Weight")),
    ("bust", ("バスト", "Bust")),
    ("waist", ("ウエスト", "Waist")),
    ("hip", ("ヒップ", "Hip")),
    ("shoe_size", ("靴", "Shoe")),
    ("specialty", ("特技", "Specialty")),
    ("hobby", ("趣味", "Hobby")),
    ("bank_name", ("銀行名", "Bank")),
    ("branch_name", ("支店", "Branch")),
    ("account_type", ("口座種別", "種別", "Account Type")),
    ("account_number", ("口座番号", "Account No")),
    ("account_holder", ("口座名義", "名義", "Account Holder")),
    ("total_sales", TOTAL_SALES_LABELS),
    *month_label_variants(),
]


@dataclass(frozen=True)
class ImportKind:
    name: str
    description: str
    target: str
    header_keywords: tuple[str, ...]
    header_hint: str
    labels: tuple[tuple[str, tuple[str, ...]], ...]
    min_matches: int = MIN_KEYWORD_MATCHES
    fixed_columns: tuple[tuple[str, int], ...] = ()
    anchor_months_to: str | None = None
    # Header keywords must fill a whole cell, so a title such as
    # "タレント名簿 2024年度" is not taken for the header.
    header_whole_cell: bool = False
    uses_divisor: bool = False
    year_type: str | None = None


IMPORT_KINDS: dict[str, ImportKind] = {
    kind.name: kind
    for kind in (
        ImportKind(
            name="company-sales/current",
            description="company sales (current fiscal year)",
            target="company_sales",
            header_keywords=MONTH_KEYWORDS,
            header_hint="month labels (10月, 11月, 12月 ... / Oct, Nov, Dec ...)",
            labels=tuple(month_label_variants()),
            year_type="current",
        ),
        ImportKind(
            name="company-sales/previous",
            description="company sales (previous fiscal year)",
            target="company_sales",
            header_keywords=MONTH_KEYWORDS,
            header_hint="month labels (10月, 11月, 12月 ... / Oct, Nov, Dec ...)",
            labels=tuple(month_label_variants()),
            year_type="previous",
        ),
        ImportKind(
            name="talent-sales",
            description="talent sales",
            target="talents",
            header_keywords=MONTH_KEYWORDS,
            header_hint="month labels (10月, 11月, 12月 ... / Oct, Nov, Dec ...)",
            labels=(("name", NAME_LABELS), *month_label_variants(), ("total_sales", TOTAL_SALES_LABELS)),
            # Column A holds the name and column N the annual total.
            fixed_columns=(("name", 0), ("total_sales", 13)),
            anchor_months_to="total_sales",
            uses_divisor=True,
        ),
        ImportKind(
            name="talent-profile",
            description="talent profile bulk import",
            target="talents",
            header_keywords=NAME_LABELS,
            header_hint="a name column label (氏名 / 名前 / タレント名 / Name)",
            labels=tuple(PROFILE_LABELS),
            min_matches=1,
            header_whole_cell=True,
        ),
    )
}
YEAR_TYPES = ("current", "previous")


def get_import_kind(name: str) -> ImportKind:
    try:
        return IMPORT_KINDS[name]
    except KeyError:
        raise ValueError(
            f"Unknown import kind '{name}'. Supported: {', '.join(IMPORT_KINDS)}"
        ) from None


# ── Structural failures ────────────────────────────────────────────────────────

class ImportFailure(ValueError):
    code = "import_failed"

    def __init__(self, message: str, kind: str | None = None) -> None:
        super().__init__(message)
        self.kind = kind


class HeaderNotFound(ImportFailure):
    code = "header_not_found"

    def __init__(self, kind: ImportKind) -> None:
        super().__init__(
            f"Header row not found for {kind.description} import: no row in the first "
            f"{HEADER_SEARCH_WINDOW} rows contains {kind.min_matches} or more of "
            f"{kind.header_hint}.",
            kind.name,
        )
        self.header_hint = kind.header_hint


class NoDataRows(ImportFailure):
    code = "no_data_rows"


class InvalidDivisor(ImportFailure):
    code = "invalid_divisor"


class EncodingMismatch(ImportFailure):
    code = "encoding_mismatch"


# ── Per-import results ─────────────────────────────────────────────────────────

@dataclass
class RejectedRow:
    row_num: int
    name: str
    reason: str


@dataclass
class ImportResult:
    kind: str
    header_index: int
    column_map: dict[str, int | None]
    normalized: list[dict[str, Any]]
    rejected: list[RejectedRow] = field(default_factory=list)
    records: list[dict[str, Any]] | None = None
    sales: dict[str, list[int]] | None = None
    divisor: int | None = None
    encoding: str | None = None
    warnings: list[str] = field(default_factory=list)
    stats: dict[str, int] = field(default_factory=dict)
