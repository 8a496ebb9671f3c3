"""
Duplicate charge detection.

Rows for the same tenant name at the same property and unit are treated as
one tenancy. Within each such group only the highest fee is submitted.

Rows are marked by position in the checked list, not by `row_id`: the usual
duplicate shares its selection id with the row that is kept.
"""
from dataclasses import dataclass, field
from typing import Dict, List, Sequence, Set, Tuple

from latefees.models import ChargeRow


def row_id(row: ChargeRow) -> str:
    """Selection identity of a charge row."""
    return f"{row.property_name}|{row.unit_name}|{row.tenant_name}|{row.v2_property_id}"


def duplicate_key(row: ChargeRow) -> Tuple[str, str, str]:
    """Coarser than row_id: ignores the property id."""
    return (row.property_name, row.unit_name, row.tenant_name)


@dataclass
class DuplicateReport:
    """Positions into the rows passed to detect_duplicates."""
    excluded_positions: Set[int] = field(default_factory=set)  # lower-amount duplicates
    group_positions: Set[int] = field(default_factory=set)  # every member of any group

    def is_excluded(self, position: int) -> bool:
        return position in self.excluded_positions

    def in_group(self, position: int) -> bool:
        return position in self.group_positions


def detect_duplicates(rows: Sequence[ChargeRow]) -> DuplicateReport:
    """
    Group rows with a positive amount by (property, unit, tenant name).

    In each group of two or more, the highest amount is kept and the rest
    are excluded. Equal amounts keep their input order (stable sort), so the
    earliest row wins a tie.
    """
    groups: Dict[Tuple[str, str, str], List[int]] = {}
    for position, row in enumerate(rows):
        if row.amount <= 0:
            continue
        groups.setdefault(duplicate_key(row), []).append(position)

    report = DuplicateReport()
    for members in groups.values():
        if len(members) < 2:
            continue
        ranked = sorted(members, key=lambda p: rows[p].amount, reverse=True)
        report.group_positions.update(ranked)
        report.excluded_positions.update(ranked[1:])

    return report
