import pytest

from inactivity.models import AdminLevel, CountryCovariate, IncomeGroup, Sex, SurveyRecord


def make_record(country="USA", value=0.3, mid_year=2020, sex=None, **kwargs) -> SurveyRecord:
    """SurveyRecord with sensible defaults; ``sex`` accepts "M"/"F" shorthands."""
    if sex == "M":
        sex = Sex.MALE
    elif sex == "F":
        sex = Sex.FEMALE
    return SurveyRecord(country_code=country, value=value, mid_year=mid_year, sex=sex, **kwargs)


@pytest.fixture()
def record():
    return make_record


@pytest.fixture()
def usa_rows():
    return [
        make_record("usa", 0.30, 2020, "M", sample_size=100),
        make_record("USA", 0.25, 2020, "F", sample_size=120),
        make_record("USA", 0.35, 2015, "M", sample_size=90),
    ]


@pytest.fixture()
def mixed_rows():
    return [
        make_record("FRA", 0.30, 2016, "M", start_age=18, end_age=64, sample_size=500,
                    survey_admin="Face-to-face", questionnaire_cat="GPAQ",
                    admin_level=AdminLevel.NATIONAL),
        make_record("FRA", 0.40, 2016, "F", start_age=18, end_age=64, sample_size=520,
                    survey_admin="Face-to-face", questionnaire_cat="GPAQ",
                    admin_level=AdminLevel.NATIONAL),
        make_record("KEN", 0.15, 2015, "M", start_age=25, end_age=69, sample_size=1000,
                    survey_admin="Phone", questionnaire_cat="IPAQ",
                    admin_level=AdminLevel.REGIONAL),
        make_record("KEN", 0.20, 2015, "F", start_age=25, end_age=69, sample_size=None,
                    survey_admin=None, questionnaire_cat="IPAQ",
                    admin_level=None),
        make_record("BRA", 0.47, 2013, None, start_age=None, end_age=None, sample_size=60000,
                    survey_admin="Face-to-face", questionnaire_cat="Other",
                    admin_level=AdminLevel.URBAN),
        make_record("XXX", 0.50, 2018, "M", sample_size=10),
    ]


@pytest.fixture()
def covariates():
    return {
        "FRA": CountryCovariate("FRA", IncomeGroup.HIGH, 81.0, {"regionname": "Europe"}),
        "KEN": CountryCovariate("KEN", IncomeGroup.LOWER_MIDDLE, 28.0),
        "BRA": CountryCovariate("BRA", IncomeGroup.UPPER_MIDDLE, None),
    }
