"""Full recomputation of everything the dashboard shows for one set of filters.

Each call takes the loaded tables and an immutable criteria snapshot and
returns a fresh ``DerivedViews``; nothing is cached or mutated here.
"""
import logging
import time
from typing import Dict, Iterable, List, Optional

from inactivity import engine
from inactivity.config import DEFAULT_VALUE_RANGE, TOP_N_EXPLORER, TOP_N_OVERVIEW
from inactivity.filters import country_passes, filter_by_country, filter_rows
from inactivity.models import (
    ALL_INCOME_GROUPS,
    CountryCovariate,
    CountrySummary,
    CovariatePolicy,
    DerivedViews,
    FilterCriteria,
    IncomeGroup,
    Range,
    SurveyRecord,
)

logger = logging.getLogger(__name__)


def _derive(
    rows: List[SurveyRecord],
    summaries: Dict[str, CountrySummary],
    active: Iterable[str],
    top: int,
) -> DerivedViews:
    return DerivedViews(
        summaries=summaries,
        rows=rows,
        rows_by_country=engine.group_by_country(rows),
        active=frozenset(active),
        total_sample=engine.total_sample(rows),
        top=engine.top_n(rows, top),
        stats=engine.global_stats(rows),
        coverage=engine.coverage(rows),
    )


def recompute_explorer(
    records: List[SurveyRecord],
    covariates: Optional[Dict[str, CountryCovariate]],
    criteria: FilterCriteria,
    top: int = TOP_N_EXPLORER,
) -> DerivedViews:
    """Row-level filtering; the map shows the aggregate of the filtered rows."""
    start_time = time.time()
    rows = filter_rows(records, covariates, criteria)
    summaries = engine.aggregate(rows)
    views = _derive(rows, summaries, summaries.keys(), top)
    logger.debug("explorer recompute: %d rows, %d countries in %.2fms",
                 len(rows), len(summaries), (time.time() - start_time) * 1000)
    return views


def recompute_overview(
    records: List[SurveyRecord],
    covariates: Optional[Dict[str, CountryCovariate]],
    income_groups: Iterable[IncomeGroup] = ALL_INCOME_GROUPS,
    value_range: Range = DEFAULT_VALUE_RANGE,
    top: int = TOP_N_OVERVIEW,
    policy: CovariatePolicy = CovariatePolicy.EXCLUDE,
    summaries: Optional[Dict[str, CountrySummary]] = None,
) -> DerivedViews:
    """Country-level filtering over the unfiltered per-country aggregate.

    The map keeps every country; ``active`` marks the ones that match.
    ``summaries`` may be passed in when the caller already aggregated
    ``records``.
    """
    start_time = time.time()
    income_groups = frozenset(income_groups)
    if summaries is None:
        summaries = engine.aggregate(records)
    active = [code for code in summaries
              if country_passes(code, summaries, covariates, income_groups, value_range, policy)]
    rows = filter_by_country(records, summaries, covariates, income_groups, value_range, policy)
    views = _derive(rows, summaries, active, top)
    logger.debug("overview recompute: %d active of %d countries in %.2fms",
                 len(active), len(summaries), (time.time() - start_time) * 1000)
    return views
