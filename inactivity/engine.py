"""Per-country aggregation, ranking and summary statistics over survey records.

Every function here is pure and total: sparse or missing fields are skipped,
empty inputs give empty or ``None`` results, and nothing raises for well-typed
records.
"""
import math
from typing import Any, Dict, Iterable, List, Optional

from inactivity.models import (
    CountrySummary,
    GlobalStats,
    LatestSummary,
    RankedCountry,
    Sex,
    SurveyRecord,
)


def normalize_code(value: Any) -> str:
    if value is None:
        return ''
    return str(value).strip().upper()


def is_finite_number(x: Optional[float]) -> bool:
    return x is not None and isinstance(x, (int, float)) and math.isfinite(x)


def _mean(nums: List[float]) -> Optional[float]:
    if not nums:
        return None
    return sum(nums) / len(nums)


def _valid_values(rows: Iterable[SurveyRecord]) -> List[float]:
    return [r.value for r in rows if is_finite_number(r.value)]


def round_half_up(x: float) -> int:
    # Built-in round() is banker's rounding; percentages are displayed half-up
    return int(math.floor(x + 0.5))


def resolve_year(row: SurveyRecord) -> Optional[float]:
    """Year used for "latest" comparisons: mid, then end, then begin."""
    for y in (row.mid_year, row.end_year, row.begin_year):
        if is_finite_number(y):
            return y
    return None


def group_by_country(rows: Iterable[SurveyRecord]) -> Dict[str, List[SurveyRecord]]:
    groups: Dict[str, List[SurveyRecord]] = {}
    for r in rows:
        groups.setdefault(normalize_code(r.country_code), []).append(r)
    return groups


def latest_year(rows: Iterable[SurveyRecord]) -> Optional[float]:
    years = sorted({y for y in (resolve_year(r) for r in rows) if y is not None})
    return years[-1] if years else None


def rows_at_year(rows: Iterable[SurveyRecord], year: float) -> List[SurveyRecord]:
    return [r for r in rows if resolve_year(r) == year]


def latest_summary(rows: List[SurveyRecord]) -> Optional[LatestSummary]:
    """Stratified means at the most recent resolved year of ``rows``."""
    year = latest_year(rows)
    if year is None:
        return None
    lrows = rows_at_year(rows, year)
    return LatestSummary(
        year=year,
        male=_mean(_valid_values(r for r in lrows if r.sex is Sex.MALE)),
        female=_mean(_valid_values(r for r in lrows if r.sex is Sex.FEMALE)),
        overall=_mean(_valid_values(lrows)),
    )


def aggregate(rows: Iterable[SurveyRecord]) -> Dict[str, CountrySummary]:
    out = {}
    for code, items in group_by_country(rows).items():
        out[code] = CountrySummary(
            country_code=code,
            overall_mean=_mean(_valid_values(items)),
            latest=latest_summary(items),
        )
    return out


def top_n(rows: Iterable[SurveyRecord], n: int) -> List[RankedCountry]:
    """Countries with the highest latest-year mean, ties by code ascending."""
    ranked = []
    for code, items in group_by_country(rows).items():
        summary = latest_summary(items)
        if summary is None or summary.overall is None:
            continue
        ranked.append(RankedCountry(country_code=code, value=summary.overall))
    ranked.sort(key=lambda rc: (-rc.value, rc.country_code))
    return ranked[:max(n, 0)]


def gap_points(male: Optional[float], female: Optional[float]) -> Optional[int]:
    """Female minus male, each rounded to a whole percentage first."""
    if male is None or female is None:
        return None
    return round_half_up(female * 100) - round_half_up(male * 100)


def global_stats(rows: Iterable[SurveyRecord]) -> GlobalStats:
    overall, males, females = [], [], []
    for items in group_by_country(rows).values():
        summary = latest_summary(items)
        if summary is None:
            continue
        if summary.overall is not None:
            overall.append(summary.overall)
        if summary.male is not None:
            males.append(summary.male)
        if summary.female is not None:
            females.append(summary.female)

    male, female = _mean(males), _mean(females)
    return GlobalStats(
        world=_mean(overall),
        male=male,
        female=female,
        gap_points=gap_points(male, female),
    )


def _sample_sum(rows: Iterable[SurveyRecord]) -> float:
    return sum(r.sample_size if is_finite_number(r.sample_size) else 0 for r in rows)


def total_sample(rows: Iterable[SurveyRecord]) -> float:
    return _sample_sum(rows)


def _country_rows(rows: Iterable[SurveyRecord], country_code: Any) -> List[SurveyRecord]:
    code = normalize_code(country_code)
    return [r for r in rows if normalize_code(r.country_code) == code]


def country_sample(rows: Iterable[SurveyRecord], country_code: Any) -> Optional[float]:
    items = _country_rows(rows, country_code)
    if not items:
        return None
    return _sample_sum(items)


def latest_year_sample(rows: Iterable[SurveyRecord], country_code: Any) -> Optional[float]:
    items = _country_rows(rows, country_code)
    year = latest_year(items)
    if year is None:
        return None
    return _sample_sum(rows_at_year(items, year))


def coverage(rows: Iterable[SurveyRecord]) -> int:
    return len({normalize_code(r.country_code) for r in rows})
