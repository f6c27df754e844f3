import logging
import math
from typing import Dict, Iterable, List, Optional, Tuple

from inactivity.config import (
    DEFAULT_AGE_RANGE,
    DEFAULT_URBAN_RANGE,
    DEFAULT_YEAR_RANGE,
)
from inactivity.engine import is_finite_number, normalize_code, resolve_year
from inactivity.models import (
    CountryCovariate,
    CountrySummary,
    CovariatePolicy,
    FilterCriteria,
    IncomeGroup,
    Range,
    SexSelector,
    SurveyRecord,
)

logger = logging.getLogger(__name__)


def _in_range(x: float, bounds: Range) -> bool:
    return bounds[0] <= x <= bounds[1]


def passes_covariates(
    code: str,
    covariates: Optional[Dict[str, CountryCovariate]],
    income_groups: Iterable[IncomeGroup],
    urban_range: Optional[Range],
    policy: CovariatePolicy,
) -> bool:
    """Income group and urbanization check for one country.

    With no covariate table at all the check is skipped. A country missing from
    the table, or lacking an income group, is decided by ``policy``.
    """
    if covariates is None:
        return True
    cov = covariates.get(normalize_code(code))
    if cov is None or cov.income_group is None:
        return policy is CovariatePolicy.TOLERATE
    if cov.income_group not in income_groups:
        return False
    if urban_range is not None and is_finite_number(cov.urban_pct):
        return _in_range(cov.urban_pct, urban_range)
    return True


def overlaps_age(row: SurveyRecord, age_range: Range) -> bool:
    start = row.start_age if is_finite_number(row.start_age) else None
    end = row.end_age if is_finite_number(row.end_age) else None
    if start is None and end is None:
        return True
    # A single bound stands in for the missing one
    s = start if start is not None else end
    e = end if end is not None else start
    return e >= age_range[0] and s <= age_range[1]


def _passes_membership(value: Optional[str], allowed: Iterable[str]) -> bool:
    allowed = set(allowed)
    if not allowed:
        return True
    return value is not None and value in allowed


def row_passes(
    row: SurveyRecord,
    covariates: Optional[Dict[str, CountryCovariate]],
    criteria: FilterCriteria,
) -> bool:
    if not passes_covariates(row.country_code, covariates, criteria.income_groups,
                             criteria.urban_range, criteria.covariate_policy):
        return False

    if not is_finite_number(row.value) or not _in_range(row.value, criteria.value_range):
        return False

    wanted = criteria.sex.sex
    if wanted is not None and row.sex is not wanted:
        return False

    if not overlaps_age(row, criteria.age_range):
        return False

    year = resolve_year(row)
    if year is None or not _in_range(year, criteria.year_range):
        return False

    if not _passes_membership(row.survey_admin, criteria.survey_modes):
        return False

    if not _passes_membership(row.questionnaire_cat, criteria.questionnaire_cats):
        return False

    if row.admin_level is not None and row.admin_level not in criteria.admin_levels:
        return False

    return True


def filter_rows(
    rows: Iterable[SurveyRecord],
    covariates: Optional[Dict[str, CountryCovariate]],
    criteria: FilterCriteria,
) -> List[SurveyRecord]:
    rows = list(rows)
    mask = [row_passes(r, covariates, criteria) for r in rows]
    out = [r for r, keep in zip(rows, mask) if keep]
    logger.debug("filter_rows kept %d of %d rows", len(out), len(rows))
    return out


def country_passes(
    code: str,
    summaries: Dict[str, CountrySummary],
    covariates: Optional[Dict[str, CountryCovariate]],
    income_groups: Iterable[IncomeGroup],
    value_range: Range,
    policy: CovariatePolicy = CovariatePolicy.EXCLUDE,
) -> bool:
    """Overview predicate: income group plus the country's all-years mean."""
    code = normalize_code(code)
    if not passes_covariates(code, covariates, income_groups, None, policy):
        return False
    summary = summaries.get(code)
    if summary is None or not is_finite_number(summary.overall_mean):
        return False
    return _in_range(summary.overall_mean, value_range)


def filter_by_country(
    rows: Iterable[SurveyRecord],
    summaries: Dict[str, CountrySummary],
    covariates: Optional[Dict[str, CountryCovariate]],
    income_groups: Iterable[IncomeGroup],
    value_range: Range,
    policy: CovariatePolicy = CovariatePolicy.EXCLUDE,
) -> List[SurveyRecord]:
    income_groups = frozenset(income_groups)
    verdicts: Dict[str, bool] = {}
    out = []
    for r in rows:
        code = normalize_code(r.country_code)
        if code not in verdicts:
            verdicts[code] = country_passes(code, summaries, covariates,
                                            income_groups, value_range, policy)
        if verdicts[code]:
            out.append(r)
    return out


def _span(values: List[float], fallback: Range) -> Range:
    if not values:
        return fallback
    return (float(math.floor(min(values))), float(math.ceil(max(values))))


def available_options(records: Iterable[SurveyRecord]) -> Tuple[List[str], List[str]]:
    records = list(records)
    modes = sorted({r.survey_admin for r in records if r.survey_admin})
    cats = sorted({r.questionnaire_cat for r in records if r.questionnaire_cat})
    return modes, cats


def default_criteria(
    records: Iterable[SurveyRecord],
    covariates: Optional[Dict[str, CountryCovariate]] = None,
) -> FilterCriteria:
    """Open criteria whose ranges span what the loaded tables contain."""
    records = list(records)
    ages = [a for r in records for a in (r.start_age, r.end_age) if is_finite_number(a)]
    years = [y for r in records for y in (r.begin_year, r.mid_year, r.end_year) if is_finite_number(y)]
    urban = [c.urban_pct for c in (covariates or {}).values() if is_finite_number(c.urban_pct)]
    return FilterCriteria(
        sex=SexSelector.BOTH,
        age_range=_span(ages, DEFAULT_AGE_RANGE),
        year_range=_span(years, DEFAULT_YEAR_RANGE),
        urban_range=_span(urban, DEFAULT_URBAN_RANGE),
    )
