"""Typed rows and derived values shared by the loaders, the engine and the app."""
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, FrozenSet, List, Optional, Tuple

from inactivity.config import (
    DEFAULT_AGE_RANGE,
    DEFAULT_URBAN_RANGE,
    DEFAULT_VALUE_RANGE,
    DEFAULT_YEAR_RANGE,
)

Range = Tuple[float, float]


class Sex(str, Enum):
    MALE = "MALE"
    FEMALE = "FEMALE"


class SexSelector(str, Enum):
    BOTH = "both"
    MALE = "M"
    FEMALE = "F"

    @property
    def sex(self) -> Optional[Sex]:
        if self is SexSelector.MALE:
            return Sex.MALE
        if self is SexSelector.FEMALE:
            return Sex.FEMALE
        return None


class IncomeGroup(str, Enum):
    HIGH = "H"
    UPPER_MIDDLE = "UM"
    LOWER_MIDDLE = "LM"
    LOW = "L"


class AdminLevel(str, Enum):
    NATIONAL = "N"
    REGIONAL = "R"
    URBAN = "U"


class CovariatePolicy(str, Enum):
    # EXCLUDE drops rows whose country has no covariate row (or no income group)
    EXCLUDE = "exclude"
    TOLERATE = "tolerate"


ALL_INCOME_GROUPS: FrozenSet[IncomeGroup] = frozenset(IncomeGroup)
ALL_ADMIN_LEVELS: FrozenSet[AdminLevel] = frozenset(AdminLevel)


@dataclass(frozen=True)
class SurveyRecord:
    country_code: str
    sex: Optional[Sex] = None
    begin_year: Optional[float] = None
    mid_year: Optional[float] = None
    end_year: Optional[float] = None
    start_age: Optional[float] = None
    end_age: Optional[float] = None
    value: Optional[float] = None
    sample_size: Optional[float] = None
    survey_admin: Optional[str] = None
    questionnaire_cat: Optional[str] = None
    admin_level: Optional[AdminLevel] = None


@dataclass(frozen=True)
class CountryCovariate:
    country_code: str
    income_group: Optional[IncomeGroup] = None
    urban_pct: Optional[float] = None
    extra: Dict[str, Any] = field(default_factory=dict, compare=False, hash=False)


@dataclass(frozen=True)
class LatestSummary:
    year: float
    male: Optional[float]
    female: Optional[float]
    overall: Optional[float]


@dataclass(frozen=True)
class CountrySummary:
    country_code: str
    overall_mean: Optional[float]
    latest: Optional[LatestSummary]


@dataclass(frozen=True)
class RankedCountry:
    country_code: str
    value: float


@dataclass(frozen=True)
class GlobalStats:
    world: Optional[float] = None
    male: Optional[float] = None
    female: Optional[float] = None
    gap_points: Optional[int] = None


@dataclass(frozen=True)
class FilterCriteria:
    """Immutable snapshot of every filter facet.

    Empty ``survey_modes`` / ``questionnaire_cats`` mean "all"; the other sets
    are literal memberships.
    """
    income_groups: FrozenSet[IncomeGroup] = ALL_INCOME_GROUPS
    sex: SexSelector = SexSelector.BOTH
    age_range: Range = DEFAULT_AGE_RANGE
    year_range: Range = DEFAULT_YEAR_RANGE
    survey_modes: FrozenSet[str] = frozenset()
    questionnaire_cats: FrozenSet[str] = frozenset()
    admin_levels: FrozenSet[AdminLevel] = ALL_ADMIN_LEVELS
    urban_range: Range = DEFAULT_URBAN_RANGE
    value_range: Range = DEFAULT_VALUE_RANGE
    covariate_policy: CovariatePolicy = CovariatePolicy.EXCLUDE


@dataclass(frozen=True)
class DerivedViews:
    summaries: Dict[str, CountrySummary]
    rows: List[SurveyRecord]
    rows_by_country: Dict[str, List[SurveyRecord]]
    active: FrozenSet[str]
    total_sample: float
    top: List[RankedCountry]
    stats: GlobalStats
    coverage: int

    def is_active(self, code: Any) -> bool:
        from inactivity.engine import normalize_code
        return normalize_code(code) in self.active
