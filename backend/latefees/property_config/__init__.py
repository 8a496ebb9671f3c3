# Config package
from latefees.property_config.jurisdictions import (
    COOK_COUNTY_PARAMS,
    CHICAGO_PARAMS,
    Jurisdiction,
    JurisdictionTable,
    LateFeeParams,
    build_jurisdictions,
    get_jurisdictions,
)
