"""
tests/test_filters.py

Row-level filtering (explorer), country-level filtering (overview) and the
criteria defaults derived from loaded tables.
"""
from dataclasses import replace

import pytest

from inactivity.engine import aggregate
from inactivity.filters import (
    available_options,
    country_passes,
    default_criteria,
    filter_by_country,
    filter_rows,
    overlaps_age,
)
from inactivity.models import (
    AdminLevel,
    CovariatePolicy,
    FilterCriteria,
    IncomeGroup,
    SexSelector,
)
from tests.conftest import make_record


def codes(rows):
    return [r.country_code for r in rows]


@pytest.fixture()
def open_criteria():
    return FilterCriteria(age_range=(0, 100), year_range=(2000, 2030))


# ---------------------------------------------------------------------------
# covariates
# ---------------------------------------------------------------------------


class TestCovariateCriteria:
    def test_missing_covariate_excluded_by_default(self, mixed_rows, covariates, open_criteria):
        out = filter_rows(mixed_rows, covariates, open_criteria)
        assert "XXX" not in codes(out)
        assert len(out) == 5

    def test_missing_covariate_tolerated(self, mixed_rows, covariates, open_criteria):
        criteria = replace(open_criteria, covariate_policy=CovariatePolicy.TOLERATE)
        assert "XXX" in codes(filter_rows(mixed_rows, covariates, criteria))

    def test_no_table_skips_covariate_checks(self, mixed_rows, open_criteria):
        criteria = replace(open_criteria, income_groups=frozenset())
        assert len(filter_rows(mixed_rows, None, criteria)) == len(mixed_rows)

    def test_income_group(self, mixed_rows, covariates, open_criteria):
        criteria = replace(open_criteria, income_groups=frozenset({IncomeGroup.HIGH}))
        assert set(codes(filter_rows(mixed_rows, covariates, criteria))) == {"FRA"}

    def test_urban_range(self, mixed_rows, covariates, open_criteria):
        criteria = replace(open_criteria, urban_range=(0, 50))
        # BRA has no urbanization figure and is kept
        assert set(codes(filter_rows(mixed_rows, covariates, criteria))) == {"KEN", "BRA"}

    def test_lowercase_row_code_matches_covariate(self, covariates, open_criteria):
        rows = [make_record(" fra ", 0.3, 2016)]
        assert len(filter_rows(rows, covariates, open_criteria)) == 1


# ---------------------------------------------------------------------------
# per-row criteria
# ---------------------------------------------------------------------------


class TestRowCriteria:
    def test_value_range_and_missing_values(self, open_criteria):
        rows = [make_record(value=None), make_record(value=0.2), make_record(value=0.6)]
        criteria = replace(open_criteria, value_range=(0.1, 0.5))
        assert [r.value for r in filter_rows(rows, None, criteria)] == [0.2]

    def test_sex_selector(self, mixed_rows, open_criteria):
        women = filter_rows(mixed_rows, None, replace(open_criteria, sex=SexSelector.FEMALE))
        assert codes(women) == ["FRA", "KEN"]
        both = filter_rows(mixed_rows, None, open_criteria)
        assert len(both) == len(mixed_rows)

    def test_year_range_and_unresolvable(self, open_criteria):
        rows = [make_record(mid_year=2010), make_record(mid_year=None, begin_year=2019),
                make_record(mid_year=None)]
        criteria = replace(open_criteria, year_range=(2015, 2020))
        out = filter_rows(rows, None, criteria)
        assert [r.begin_year for r in out] == [2019]

    def test_survey_mode_empty_means_all(self, mixed_rows, open_criteria):
        assert len(filter_rows(mixed_rows, None, open_criteria)) == len(mixed_rows)

    def test_survey_mode_membership(self, mixed_rows, open_criteria):
        criteria = replace(open_criteria, survey_modes=frozenset({"Phone"}))
        # rows without a mode fail once a mode is selected
        assert codes(filter_rows(mixed_rows, None, criteria)) == ["KEN"]

    def test_questionnaire_membership(self, mixed_rows, open_criteria):
        criteria = replace(open_criteria, questionnaire_cats=frozenset({"IPAQ"}))
        assert codes(filter_rows(mixed_rows, None, criteria)) == ["KEN", "KEN"]

    def test_admin_level(self, mixed_rows, open_criteria):
        criteria = replace(open_criteria, admin_levels=frozenset({AdminLevel.NATIONAL}))
        # rows without an admin level always pass
        assert codes(filter_rows(mixed_rows, None, criteria)) == ["FRA", "FRA", "KEN", "XXX"]

    def test_preserves_order(self, mixed_rows, open_criteria):
        out = filter_rows(mixed_rows, None, open_criteria)
        assert out == mixed_rows


class TestAgeOverlap:
    @pytest.mark.parametrize("start,end,expected", [
        (None, None, True),
        (18, 64, True),
        (70, 80, False),
        (5, 15, False),
        (15, 20, True),
        (40, None, True),
        (None, 17, False),
        (70, None, False),
    ])
    def test_overlap(self, start, end, expected):
        row = make_record(start_age=start, end_age=end)
        assert overlaps_age(row, (18, 65)) is expected


class TestMonotonicity:
    @pytest.mark.parametrize("field,narrow,wide", [
        ("age_range", (30, 40), (0, 100)),
        ("year_range", (2016, 2016), (2000, 2030)),
        ("value_range", (0.2, 0.4), (0.0, 1.0)),
        ("urban_range", (20, 30), (0, 100)),
    ])
    def test_widening_never_shrinks(self, mixed_rows, covariates, open_criteria, field, narrow, wide):
        policy = CovariatePolicy.TOLERATE
        narrow_out = filter_rows(mixed_rows, covariates,
                                 replace(open_criteria, covariate_policy=policy, **{field: narrow}))
        wide_out = filter_rows(mixed_rows, covariates,
                               replace(open_criteria, covariate_policy=policy, **{field: wide}))
        assert len(wide_out) >= len(narrow_out)
        assert set(map(id, narrow_out)) <= set(map(id, wide_out))


# ---------------------------------------------------------------------------
# overview: country-level filtering
# ---------------------------------------------------------------------------


class TestCountryFilter:
    def test_country_passes_uses_overall_mean(self, mixed_rows, covariates):
        summaries = aggregate(mixed_rows)
        all_groups = frozenset(IncomeGroup)
        assert country_passes("fra", summaries, covariates, all_groups, (0.3, 0.4))
        assert not country_passes("KEN", summaries, covariates, all_groups, (0.3, 0.4))
        assert not country_passes("XXX", summaries, covariates, all_groups, (0.0, 1.0))
        assert country_passes("XXX", summaries, covariates, all_groups, (0.0, 1.0),
                              CovariatePolicy.TOLERATE)

    def test_filter_by_country_keeps_whole_countries(self, mixed_rows, covariates):
        summaries = aggregate(mixed_rows)
        out = filter_by_country(mixed_rows, summaries, covariates,
                                {IncomeGroup.HIGH, IncomeGroup.LOWER_MIDDLE}, (0.0, 1.0))
        assert codes(out) == ["FRA", "FRA", "KEN", "KEN"]

    def test_unknown_country_without_summary(self, covariates):
        assert not country_passes("FRA", {}, covariates, frozenset(IncomeGroup), (0.0, 1.0))


# ---------------------------------------------------------------------------
# defaults
# ---------------------------------------------------------------------------


class TestDefaults:
    def test_ranges_span_data(self, mixed_rows, covariates):
        criteria = default_criteria(mixed_rows, covariates)
        assert criteria.age_range == (18.0, 69.0)
        assert criteria.year_range == (2013.0, 2018.0)
        assert criteria.urban_range == (28.0, 81.0)
        assert criteria.sex is SexSelector.BOTH
        assert criteria.survey_modes == frozenset()

    def test_fallbacks(self):
        criteria = default_criteria([])
        assert criteria.age_range == (0.0, 100.0)
        assert criteria.year_range == (2000.0, 2030.0)
        assert criteria.urban_range == (0.0, 100.0)

    def test_defaults_keep_every_row(self, mixed_rows, covariates):
        criteria = replace(default_criteria(mixed_rows, covariates),
                           covariate_policy=CovariatePolicy.TOLERATE)
        assert len(filter_rows(mixed_rows, covariates, criteria)) == len(mixed_rows)

    def test_available_options(self, mixed_rows):
        modes, cats = available_options(mixed_rows)
        assert modes == ["Face-to-face", "Phone"]
        assert cats == ["GPAQ", "IPAQ", "Other"]
