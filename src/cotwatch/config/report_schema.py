"""Column schema for the CFTC Disaggregated Futures-Only report.

The report header is treated as a versioned contract with the CFTC: every
column the mapper reads is listed here with the record field it fills, the
header spellings accepted for it, how the raw text is parsed, and the value
used when parsing fails or the column is missing.

The CFTC text files are not perfectly consistent between years (e.g. the swap
dealer short column is spelled ``Swap__Positions_Short_All`` with a double
underscore, and some vintages use an ``_ALL`` suffix), so each column lists
every known spelling. Header lookup is case-insensitive.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date, datetime
from enum import Enum


class ColumnKind(str, Enum):
    """How a raw cell is converted to a record value."""

    TEXT = "text"
    INTEGER = "integer"
    DATE = "date"


@dataclass(frozen=True)
class ColumnSpec:
    """One column of the report schema.

    Attributes
    ----------
    field : str
        Target attribute on ``PositioningRecord`` (or a mapper-only key such
        as ``market_name``).
    headers : tuple[str, ...]
        Accepted header spellings, in preference order.
    kind : ColumnKind
        Parser applied to the raw cell.
    default : object
        Value used when the cell is missing or unparseable. ``None`` means the
        column is required and a parse failure rejects the row.
    """

    field: str
    headers: tuple[str, ...]
    kind: ColumnKind
    default: object = None


SCHEMA_VERSION = "disaggregated-futures-2006"

MARKET_NAME = ColumnSpec(
    "market_name", ("Market_and_Exchange_Names",), ColumnKind.TEXT, "",
)
REPORT_DATE = ColumnSpec(
    "report_date",
    ("Report_Date_as_YYYY-MM-DD", "As_of_Date_In_Form_YYMMDD"),
    ColumnKind.DATE,
)
CONTRACT_CODE = ColumnSpec(
    "contract_code", ("CFTC_Contract_Market_Code",), ColumnKind.TEXT, "",
)

POSITION_COLUMNS: tuple[ColumnSpec, ...] = (
    ColumnSpec(
        "open_interest",
        ("Open_Interest_All", "Open_Interest_ALL"),
        ColumnKind.INTEGER, 0,
    ),
    ColumnSpec(
        "commercial_long",
        ("Prod_Merc_Positions_Long_All", "Prod_Merc_Positions_Long_ALL"),
        ColumnKind.INTEGER, 0,
    ),
    ColumnSpec(
        "commercial_short",
        ("Prod_Merc_Positions_Short_All", "Prod_Merc_Positions_Short_ALL"),
        ColumnKind.INTEGER, 0,
    ),
    ColumnSpec(
        "swap_long",
        ("Swap_Positions_Long_All", "Swap__Positions_Long_All"),
        ColumnKind.INTEGER, 0,
    ),
    ColumnSpec(
        "swap_short",
        ("Swap__Positions_Short_All", "Swap_Positions_Short_All"),
        ColumnKind.INTEGER, 0,
    ),
    ColumnSpec(
        "managed_money_long",
        ("M_Money_Positions_Long_All", "M_Money_Positions_Long_ALL"),
        ColumnKind.INTEGER, 0,
    ),
    ColumnSpec(
        "managed_money_short",
        ("M_Money_Positions_Short_All", "M_Money_Positions_Short_ALL"),
        ColumnKind.INTEGER, 0,
    ),
    ColumnSpec(
        "other_reportable_long",
        ("Other_Rept_Positions_Long_All", "Other_Rept_Positions_Long_ALL"),
        ColumnKind.INTEGER, 0,
    ),
    ColumnSpec(
        "other_reportable_short",
        ("Other_Rept_Positions_Short_All", "Other_Rept_Positions_Short_ALL"),
        ColumnKind.INTEGER, 0,
    ),
)

DISAGGREGATED_COLUMNS: tuple[ColumnSpec, ...] = (
    MARKET_NAME,
    REPORT_DATE,
    CONTRACT_CODE,
    *POSITION_COLUMNS,
)

# Trader classifications with a derived net (long - short) field.
CLASSIFICATIONS: tuple[str, ...] = (
    "commercial",
    "swap",
    "managed_money",
    "other_reportable",
)

_DATE_FORMATS = ("%Y-%m-%d", "%y%m%d", "%m/%d/%Y")


def parse_integer(raw: str | None, default: int = 0) -> int:
    """Parse a position count such as ``"12,345"``; ``default`` on failure."""
    if raw is None:
        return default
    text = str(raw).strip().replace(",", "")
    if not text or text == ".":
        return default
    try:
        return int(float(text))
    except (ValueError, OverflowError):
        return default


def parse_report_date(raw: str | None) -> date:
    """Parse a report date in any of the CFTC formats.

    Raises
    ------
    ValueError
        If the value is blank or matches none of the known formats.
    """
    text = str(raw or "").strip()
    if not text:
        raise ValueError("blank report date")
    # Strip a time component ("2024-01-02 00:00:00") if present.
    text = text.split(" ")[0]
    for fmt in _DATE_FORMATS:
        try:
            return datetime.strptime(text, fmt).date()
        except ValueError:
            continue
    raise ValueError(f"unrecognised report date {raw!r}")
