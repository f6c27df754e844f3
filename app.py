import logging
import time
from pathlib import Path
from typing import Any, Dict, Optional

import plotly.graph_objects as go
import streamlit as st

from inactivity.config import (
    COLOR_DOMAIN,
    COVARIATES_FILE,
    DATA_DIR,
    DEFAULT_COVARIATES_FILE,
    DEFAULT_RECORDS_FILE,
    LOG_LEVEL,
    RECORDS_FILE,
    TOP_N_EXPLORER,
    TOP_N_OVERVIEW,
)
from inactivity.csv_parser import DataLoadError, load_covariates, load_records
from inactivity.engine import aggregate, country_sample, latest_year_sample
from inactivity.filters import available_options, default_criteria
from inactivity.models import (
    AdminLevel,
    CountryCovariate,
    CovariatePolicy,
    DerivedViews,
    FilterCriteria,
    IncomeGroup,
    SexSelector,
)
from inactivity.views import recompute_explorer, recompute_overview

logging.basicConfig(level=LOG_LEVEL, format="%(asctime)s %(levelname)s %(name)s: %(message)s")
logger = logging.getLogger("inactivity.app")

st.set_page_config(
    page_title="Physical Inactivity World Map",
    layout="wide",
    initial_sidebar_state="expanded"
)

st.markdown("""
<style>
    .main-header {
        font-size: 2rem;
        font-weight: 600;
        text-align: center;
        margin-bottom: 0.25rem;
    }

    .section-header {
        font-size: 1.5rem;
        font-weight: 600;
        margin-top: 1.5rem;
        margin-bottom: 1rem;
    }

    .subsection-header {
        font-size: 1.2rem;
        font-weight: 600;
        margin-top: 1rem;
        margin-bottom: 0.5rem;
    }
</style>
""", unsafe_allow_html=True)

PRETTY = {
    "wbinc21": "Income group (World Bank)",
    "regionname": "Region",
    "whoreg6": "WHO region",
    "gdp_per_capita": "GDP per capita",
    "population": "Population",
    "life_expectancy": "Life expectancy",
    "perurb": "Urban population (%)",
}

INCOME_LABELS = {
    IncomeGroup.HIGH: "High",
    IncomeGroup.UPPER_MIDDLE: "Upper-middle",
    IncomeGroup.LOWER_MIDDLE: "Lower-middle",
    IncomeGroup.LOW: "Low",
}

ADMIN_LABELS = {
    AdminLevel.NATIONAL: "National",
    AdminLevel.REGIONAL: "Regional",
    AdminLevel.URBAN: "Urban",
}

SEX_LABELS = {
    SexSelector.BOTH: "Both",
    SexSelector.MALE: "Men",
    SexSelector.FEMALE: "Women",
}


@st.cache_resource
def _load_records_once(csv_path: Path, delimiter: str = ','):
    try:
        with st.spinner(f"Loading and parsing {csv_path}..."):
            return load_records(csv_path, separator=delimiter), None
    except FileNotFoundError:
        return None, f"Survey file not found at: {csv_path}"
    except DataLoadError as e:
        return None, str(e)
    except (OSError, UnicodeDecodeError) as e:
        logger.exception("Failed to read %s", csv_path)
        return None, f"Failed to load survey data: {e}"


@st.cache_resource
def _load_covariates_once(csv_path: Path, delimiter: str = ','):
    try:
        with st.spinner(f"Loading and parsing {csv_path}..."):
            return load_covariates(csv_path, separator=delimiter), None
    except FileNotFoundError:
        return None, f"Covariates file not found at: {csv_path}"
    except DataLoadError as e:
        return None, str(e)
    except (OSError, UnicodeDecodeError) as e:
        logger.exception("Failed to read %s", csv_path)
        return None, f"Failed to load covariates: {e}"


def _fmt_pct(x: Optional[float]) -> str:
    try:
        return f"{float(x):.0%}"
    except (TypeError, ValueError):
        return "—"


def _fmt_num(x: Any) -> str:
    if isinstance(x, (int, float)):
        return f"{x:,.0f}" if abs(x) >= 100 else f"{x:,.2f}"
    return str(x)


def _hover_text(code: str, views: DerivedViews, covariates: Dict[str, CountryCovariate]) -> str:
    lines = [f"<b>{code}</b>"]
    item = views.summaries.get(code)
    if item is None or item.overall_mean is None:
        lines.append("No data")
    else:
        lines.append(f"All years, both sexes: {_fmt_pct(item.overall_mean)}")
        if item.latest is not None:
            lines.append(f"Latest year ({item.latest.year:.0f}): {_fmt_pct(item.latest.overall)}")
            lines.append(f"Men: {_fmt_pct(item.latest.male)} · Women: {_fmt_pct(item.latest.female)}")
    rows = views.rows_by_country.get(code)
    if rows:
        total = country_sample(rows, code)
        latest = latest_year_sample(rows, code)
        lines.append(f"Sample (filtered): {_fmt_num(total)}")
        if latest is not None:
            lines.append(f"Sample at latest year: {_fmt_num(latest)}")
    cv = covariates.get(code)
    if cv is not None:
        if cv.income_group is not None:
            lines.append(f"{PRETTY['wbinc21']}: {INCOME_LABELS[cv.income_group]}")
        if cv.urban_pct is not None:
            lines.append(f"{PRETTY['perurb']}: {cv.urban_pct:.0f}")
        for key, label in PRETTY.items():
            if key in cv.extra:
                lines.append(f"{label}: {_fmt_num(cv.extra[key])}")
    return "<br>".join(lines)


def _choropleth(views: DerivedViews, covariates: Dict[str, CountryCovariate], title: str) -> go.Figure:
    codes = sorted(c for c, s in views.summaries.items() if c and s.overall_mean is not None)
    active = [c for c in codes if views.is_active(c)]
    inactive = [c for c in codes if not views.is_active(c)]

    fig = go.Figure()
    if inactive:
        fig.add_trace(go.Choropleth(
            locations=inactive,
            z=[0] * len(inactive),
            locationmode="ISO-3",
            colorscale=[[0, "#334155"], [1, "#334155"]],
            showscale=False,
            text=[_hover_text(c, views, covariates) for c in inactive],
            hoverinfo="text",
            marker_line_color="#1e293b",
            name="Not matching",
        ))
    fig.add_trace(go.Choropleth(
        locations=active,
        z=[views.summaries[c].overall_mean for c in active],
        locationmode="ISO-3",
        colorscale="YlOrRd",
        zmin=COLOR_DOMAIN[0],
        zmax=COLOR_DOMAIN[1],
        colorbar=dict(title="Insufficient activity", tickformat=".0%", orientation="h", y=-0.1),
        text=[_hover_text(c, views, covariates) for c in active],
        hoverinfo="text",
        marker_line_color="#1e293b",
        name="Matching",
    ))
    fig.update_layout(
        title=title,
        height=560,
        margin=dict(l=0, r=0, t=40, b=0),
        geo=dict(showframe=False, showcoastlines=False, projection_type="natural earth"),
    )
    return fig


def _render_panels(views: DerivedViews, top_label: str):
    col1, col2, col3 = st.columns(3)
    with col1:
        st.metric("Coverage", f"{views.coverage}", help="Countries with data after filters")
        st.metric("Total sample", f"{views.total_sample:,.0f}")
    with col2:
        st.markdown(f"**{top_label}**")
        if views.top:
            st.dataframe(
                {"Country": [r.country_code for r in views.top],
                 "Insufficiently active": [_fmt_pct(r.value) for r in views.top]},
                width='stretch',
                hide_index=True,
            )
        else:
            st.info("No country matches these filters.")
    with col3:
        st.markdown("**Mean of latest year per country**")
        stats = views.stats
        st.metric("Overall", _fmt_pct(stats.world))
        st.metric("Men", _fmt_pct(stats.male))
        st.metric("Women", _fmt_pct(stats.female))
        if stats.gap_points is not None:
            st.caption(f"Women-men gap: {stats.gap_points} percentage points")


def _value_slider(label: str, key: str):
    lo, hi = st.slider(label, min_value=0, max_value=100, value=(0, 100), step=1, key=key)
    return (lo / 100.0, hi / 100.0)


st.markdown('<h1 class="main-header">Physical Inactivity: World Map</h1>', unsafe_allow_html=True)
st.caption("Estimated share of the population not meeting physical-activity recommendations (source: WHO).")

with st.sidebar:
    st.header("Data Settings")
    records_file = st.text_input("Survey CSV", value=DEFAULT_RECORDS_FILE)
    covariates_file = st.text_input("Covariates CSV", value=DEFAULT_COVARIATES_FILE)
    sep_mode = st.selectbox("Separator Style", ["Comma (,)", "Tab (\\t)", "Semicolon (;)"])
    sep_input = {"Comma (,)": ",", "Tab (\\t)": "\t", "Semicolon (;)": ";"}[sep_mode]

RECORDS_PATH = DATA_DIR / records_file if records_file else RECORDS_FILE
COVARIATES_PATH = DATA_DIR / covariates_file if covariates_file else COVARIATES_FILE

RECORDS, records_error = _load_records_once(RECORDS_PATH, delimiter=sep_input)
COVARIATES, covariates_error = _load_covariates_once(COVARIATES_PATH, delimiter=sep_input)

# Either load failing stops the page with a single message
load_error = records_error or covariates_error
if load_error:
    st.error(load_error)
    st.stop()

BASE = default_criteria(RECORDS, COVARIATES)
MODES, CATEGORIES = available_options(RECORDS)
FULL_SUMMARIES = aggregate(RECORDS)

tab_map, tab_explore = st.tabs(["World map", "Covariates explorer"])

with tab_map:
    st.markdown('<h2 class="section-header">Overview</h2>', unsafe_allow_html=True)
    c1, c2 = st.columns([1, 2])
    with c1:
        income = st.multiselect(
            "Income group (World Bank)",
            options=list(IncomeGroup),
            default=list(IncomeGroup),
            format_func=lambda g: INCOME_LABELS[g],
            key="overview_income",
        )
    with c2:
        value_range = _value_slider("Insufficient activity range (%, mean over all years and sexes)",
                                    key="overview_value")

    start_time = time.time()
    overview = recompute_overview(
        RECORDS,
        COVARIATES,
        income_groups=income,
        value_range=value_range,
        top=TOP_N_OVERVIEW,
        policy=CovariatePolicy.EXCLUDE,
        summaries=FULL_SUMMARIES,
    )
    elapsed_ms = (time.time() - start_time) * 1000

    st.plotly_chart(_choropleth(overview, COVARIATES, "All surveys (countries outside the filters greyed out)"),
                    use_container_width=True)
    _render_panels(overview, "Latest estimates (highest share insufficiently active)")
    st.caption(f"Recomputed {len(overview.rows):,} rows in {elapsed_ms:.1f} ms")

with tab_explore:
    st.markdown('<h2 class="section-header">Covariates explorer</h2>', unsafe_allow_html=True)

    with st.expander("Filters", expanded=True):
        f1, f2, f3 = st.columns(3)
        with f1:
            ex_income = st.multiselect(
                "Income group (World Bank)",
                options=list(IncomeGroup),
                default=list(IncomeGroup),
                format_func=lambda g: INCOME_LABELS[g],
                key="explorer_income",
            )
            sex = st.radio(
                "Sex",
                options=list(SexSelector),
                format_func=lambda s: SEX_LABELS[s],
                horizontal=True,
            )
            admin = st.multiselect(
                "Administrative level",
                options=list(AdminLevel),
                default=list(AdminLevel),
                format_func=lambda a: ADMIN_LABELS[a],
            )
        with f2:
            age_range = st.slider(
                "Age range",
                min_value=BASE.age_range[0],
                max_value=max(BASE.age_range[1], BASE.age_range[0] + 1),
                value=BASE.age_range,
                step=1.0,
            )
            year_range = st.slider(
                "Survey year",
                min_value=BASE.year_range[0],
                max_value=max(BASE.year_range[1], BASE.year_range[0] + 1),
                value=BASE.year_range,
                step=1.0,
            )
            urban_range = st.slider(
                "Urban population (%)",
                min_value=BASE.urban_range[0],
                max_value=max(BASE.urban_range[1], BASE.urban_range[0] + 1),
                value=BASE.urban_range,
                step=1.0,
                help="Applied per country from the covariates table",
            )
        with f3:
            modes = st.multiselect("Survey administration (empty = all)", options=MODES)
            cats = st.multiselect("Questionnaire category (empty = all)", options=CATEGORIES)
            ex_value_range = _value_slider("Insufficient activity range (%)", key="explorer_value")

    criteria = FilterCriteria(
        income_groups=frozenset(ex_income),
        sex=sex,
        age_range=age_range,
        year_range=year_range,
        survey_modes=frozenset(modes),
        questionnaire_cats=frozenset(cats),
        admin_levels=frozenset(admin),
        urban_range=urban_range,
        value_range=ex_value_range,
        covariate_policy=CovariatePolicy.EXCLUDE,
    )

    start_time = time.time()
    explorer = recompute_explorer(RECORDS, COVARIATES, criteria, top=TOP_N_EXPLORER)
    elapsed_ms = (time.time() - start_time) * 1000

    st.plotly_chart(_choropleth(explorer, COVARIATES, "Filtered surveys"), use_container_width=True)
    _render_panels(explorer, "Latest estimates (highest share insufficiently active)")
    st.caption(
        f"filter -> {len(explorer.rows):,} of {len(RECORDS):,} rows, "
        f"{explorer.coverage} countries in {elapsed_ms:.1f} ms"
    )

st.markdown("---")
st.caption("Based on the WHO physical activity fact sheets and the PINA survey dataset.")
