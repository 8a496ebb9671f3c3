"""
Charge table state for the manual review flow.

Holds the loaded charge rows, the active filters, the user's selection and
the duplicate sets computed over the filtered rows. Only preferences
(filters, env mode, charge date, description template) are persisted; rows
and selection are rebuilt on every load.

GET /api/charges uses only the filters and duplicate marks. Selection and
persisted preferences are the review UI store; no route exposes them, an
interactive client holds its own ChargeTable per session.
"""
import csv
from typing import Any, Dict, List, Optional, Set

import pandas as pd
from pydantic import BaseModel, Field

from latefees.config import EnvMode
from latefees.models import ChargeRow
from latefees.services.duplicates import DuplicateReport, detect_duplicates, row_id
from latefees.services.normalize import today_ymd

DEFAULT_DESCRIPTION_TEMPLATE = "IL Custom Late Fee - {date}"

CSV_COLUMNS = [
    ("Property Name", "property_name"),
    ("Unit Name", "unit_name"),
    ("Occupancy UID", "occupancy_uid"),
    ("Tenant Name", "tenant_name"),
    ("Occupancy ID", "occupancy_id"),
    ("Amount", "amount"),
    ("Charge Date", "charge_date"),
    ("Posting Date", "posting_date"),
    ("GL Account Number", "gl_account_number"),
    ("Description", "description"),
]


class ChargeFilters(BaseModel):
    property: str = ""  # case-insensitive substring of the property name
    min_amount: float = 0.0  # on the 0-30 day balance, not the fee
    max_amount: float = 0.0  # 0 = no upper limit
    show_zero_amount: bool = True
    show_missing_occupancy: bool = True
    only_missing_occupancy: bool = False
    only_duplicates: bool = False


class ChargeTablePrefs(BaseModel):
    """The persisted part of the table state."""
    filters: ChargeFilters = Field(default_factory=ChargeFilters)
    env_mode: EnvMode = EnvMode.LIVE
    charge_date: str = Field(default_factory=today_ymd)
    description_template: str = DEFAULT_DESCRIPTION_TEMPLATE


def apply_filters(rows: List[ChargeRow], filters: ChargeFilters) -> List[ChargeRow]:
    """All filters except only_duplicates, which needs the duplicate sets first."""
    needle = filters.property.lower()
    kept = []
    for row in rows:
        if needle and needle not in row.property_name.lower():
            continue
        if row.zero_to_30 < filters.min_amount:
            continue
        if filters.max_amount > 0 and row.zero_to_30 > filters.max_amount:
            continue
        if not filters.show_zero_amount and row.amount == 0:
            continue
        if not filters.show_missing_occupancy and not row.is_resolved:
            continue
        if filters.only_missing_occupancy and row.is_resolved:
            continue
        kept.append(row)
    return kept


class ChargeTable:
    """In-memory charge table for one user session."""

    def __init__(self, prefs: Optional[ChargeTablePrefs] = None):
        self.prefs = prefs or ChargeTablePrefs()
        self.rows: List[ChargeRow] = []
        self.filtered_rows: List[ChargeRow] = []
        self.selected_ids: Set[str] = set()
        self.warnings: List[str] = []
        self.duplicates = DuplicateReport()

    @property
    def filters(self) -> ChargeFilters:
        return self.prefs.filters

    def _recompute(self) -> None:
        """Filter, then mark duplicates; report positions always index filtered_rows."""
        base = apply_filters(self.rows, self.filters)
        report = detect_duplicates(base)
        if self.filters.only_duplicates:
            # only whole groups remain, so the winners are unchanged
            base = [r for i, r in enumerate(base) if report.in_group(i)]
            report = detect_duplicates(base)
        self.filtered_rows = base
        self.duplicates = report

    def set_rows(self, rows: List[ChargeRow], warnings: Optional[List[str]] = None) -> None:
        """Replace the data; selection is cleared."""
        self.rows = list(rows)
        self.warnings = list(warnings or [])
        self.selected_ids = set()
        self._recompute()

    def set_filter(self, key: str, value: Any) -> None:
        """Change one filter; selection is cleared."""
        if key not in ChargeFilters.model_fields:
            raise KeyError(f"Unknown filter: {key}")
        self.prefs.filters = self.filters.model_copy(update={key: value})
        self.selected_ids = set()
        self._recompute()

    def toggle_selection(self, key: str) -> None:
        if key in self.selected_ids:
            self.selected_ids.discard(key)
        else:
            self.selected_ids.add(key)

    def select_all(self) -> None:
        self.selected_ids = {row_id(r) for r in self.filtered_rows}

    def clear_selection(self) -> None:
        self.selected_ids = set()

    def selected_rows(self) -> List[ChargeRow]:
        return [r for r in self.filtered_rows if row_id(r) in self.selected_ids]

    def valid_selected_rows(self) -> List[ChargeRow]:
        """Selected rows that can be submitted: resolved, positive, not a lower duplicate."""
        return [
            r for i, r in enumerate(self.filtered_rows)
            if row_id(r) in self.selected_ids
            and r.is_valid_for_submission
            and not self.duplicates.is_excluded(i)
        ]

    def set_env_mode(self, mode: EnvMode) -> None:
        """Switching environments drops all loaded data."""
        self.prefs.env_mode = mode
        self.rows = []
        self.filtered_rows = []
        self.selected_ids = set()
        self.warnings = []
        self.duplicates = DuplicateReport()

    def reset(self) -> None:
        """Clear data and filters. Env mode, charge date and template are kept."""
        self.prefs.filters = ChargeFilters()
        self.rows = []
        self.filtered_rows = []
        self.selected_ids = set()
        self.warnings = []
        self.duplicates = DuplicateReport()

    def to_persisted(self) -> Dict[str, Any]:
        return self.prefs.model_dump(mode="json")

    @classmethod
    def from_persisted(cls, data: Optional[Dict[str, Any]]) -> "ChargeTable":
        return cls(ChargeTablePrefs.model_validate(data or {}))


def rows_to_csv(rows: List[ChargeRow]) -> str:
    """CSV export: BOM-prefixed for Excel, every cell quoted."""
    records = []
    for row in rows:
        record = {header: getattr(row, attr) for header, attr in CSV_COLUMNS}
        record["Amount"] = f"{row.amount:.2f}"
        records.append(record)

    df = pd.DataFrame(records, columns=[header for header, _ in CSV_COLUMNS])
    body = df.to_csv(index=False, quoting=csv.QUOTE_ALL, lineterminator="\n")
    return "\ufeff" + body
