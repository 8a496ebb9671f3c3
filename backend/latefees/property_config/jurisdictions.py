"""
Late fee jurisdictions - maps reporting-system property ids to fee rules.

Group A (Cook County) and Group B (Chicago) have fixed statutory rules; the
property ids belonging to each group come from settings. Properties in
neither group use the configured default rule.
"""
from functools import lru_cache
from typing import FrozenSet, Optional

from pydantic import BaseModel, ConfigDict

from latefees.config import Settings, get_settings, split_ids


class LateFeeParams(BaseModel):
    """Fee rule: (total - threshold) * percent + base above threshold, else base."""
    model_config = ConfigDict(frozen=True)

    threshold: float
    percent: float
    base: float


class Jurisdiction(BaseModel):
    model_config = ConfigDict(frozen=True)

    name: str
    params: LateFeeParams
    property_ids: FrozenSet[str] = frozenset()


class JurisdictionTable(BaseModel):
    """Group A, Group B and the fallback rule for everything else."""
    model_config = ConfigDict(frozen=True)

    group_a: Jurisdiction
    group_b: Jurisdiction
    default: LateFeeParams

    def lookup(self, property_id: str) -> Optional[Jurisdiction]:
        if property_id in self.group_a.property_ids:
            return self.group_a
        if property_id in self.group_b.property_ids:
            return self.group_b
        return None


# =============================================================================
# Statutory rules
# =============================================================================

COOK_COUNTY_PARAMS = LateFeeParams(threshold=1000, percent=0.05, base=10)
CHICAGO_PARAMS = LateFeeParams(threshold=500, percent=0.05, base=10)


def build_jurisdictions(settings: Settings) -> JurisdictionTable:
    """Build the jurisdiction table from settings."""
    return JurisdictionTable(
        group_a=Jurisdiction(
            name="Cook County",
            params=COOK_COUNTY_PARAMS,
            property_ids=frozenset(split_ids(settings.late_fee_group_a_property_ids)),
        ),
        group_b=Jurisdiction(
            name="Chicago",
            params=CHICAGO_PARAMS,
            property_ids=frozenset(split_ids(settings.late_fee_group_b_property_ids)),
        ),
        default=LateFeeParams(
            threshold=settings.default_late_fee_threshold,
            percent=settings.default_late_fee_percent,
            base=settings.default_late_fee_base,
        ),
    )


@lru_cache()
def get_jurisdictions() -> JurisdictionTable:
    return build_jurisdictions(get_settings())
