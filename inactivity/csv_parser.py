import logging
import math
from pathlib import Path
from typing import Any, Dict, Iterable, List, Optional, Union

from inactivity.engine import normalize_code
from inactivity.models import (
    AdminLevel,
    CountryCovariate,
    IncomeGroup,
    Sex,
    SurveyRecord,
)

logger = logging.getLogger(__name__)

RECORD_REQUIRED_COLS = {"iso3", "fail_meet_recs"}
COVARIATE_REQUIRED_COLS = {"iso3"}

# Columns kept as raw text so codes like "NAN" or "INF" never become floats
RECORD_TEXT_COLS = {"iso3", "sexstring", "survey_admin", "questionnaire_cat", "adminlevel"}
COVARIATE_TEXT_COLS = {"iso3", "wbinc21", "regionname", "whoreg6"}


class DataLoadError(Exception):
    """A table could be read but is not usable by the dashboard."""


def try_convert_type(value: str) -> Union[int, float, None, str]:
    # Try to convert string to int or float, return None if empty
    if value.strip() == '':
        return None
    try:
        return int(value)
    except ValueError:
        try:
            return float(value)
        except ValueError:
            return value


def _split_csv_line(line: str, sep: str = ',') -> List[str]:
    # Split CSV line handling quotes and escaped quotes
    out = []
    cur = []
    in_quotes = False
    i = 0
    n = len(line)

    while i < n:
        ch = line[i]
        if ch == '"':
            if in_quotes and i + 1 < n and line[i + 1] == '"':
                cur.append('"')
                i += 2
                continue
            in_quotes = not in_quotes
            i += 1
            continue
        if ch == sep and not in_quotes:
            out.append(''.join(cur))
            cur = []
            i += 1
            continue
        cur.append(ch)
        i += 1

    out.append(''.join(cur))
    return out


def custom_csv_parser(
    file_path: Union[str, Path],
    separator: str = ',',
    text_columns: Iterable[str] = (),
) -> Dict[str, List[Any]]:
    """Parse a CSV file into column-major lists.

    Cells are auto-typed (int, float, None for blanks) except for the columns
    named in ``text_columns``, which stay as stripped strings (blank -> None).
    """
    path = Path(file_path) if not isinstance(file_path, Path) else file_path

    if not path.exists():
        raise FileNotFoundError(f"File {path} not found")

    if path.stat().st_size == 0:
        return {}

    keep_text = set(text_columns)
    data = {}
    with open(path, 'r', newline='', encoding='utf-8-sig') as f:
        header_line = f.readline().rstrip('\r\n')
        headers = [h.strip() for h in _split_csv_line(header_line, separator)]
        for h in headers:
            data[h] = []

        for raw in f:
            line = raw.rstrip('\r\n')
            if not line:
                continue
            values = _split_csv_line(line, separator)

            if len(values) < len(headers):
                values += [''] * (len(headers) - len(values))

            if len(values) > len(headers):
                values = values[:len(headers)]

            for i, h in enumerate(headers):
                if h in keep_text:
                    cell = values[i].strip()
                    data[h].append(cell or None)
                else:
                    data[h].append(try_convert_type(values[i]))
    return data


def to_float_or_none(x: Any) -> Optional[float]:
    # Convert to a finite float or return None
    if x is None or isinstance(x, bool):
        return None
    try:
        out = float(x)
    except (TypeError, ValueError):
        return None
    return out if math.isfinite(out) else None


def _text_or_none(x: Any) -> Optional[str]:
    if x is None:
        return None
    s = str(x).strip()
    return s or None


def parse_sex(x: Any) -> Optional[Sex]:
    s = (_text_or_none(x) or '').upper()
    if s == Sex.MALE.value:
        return Sex.MALE
    if s == Sex.FEMALE.value:
        return Sex.FEMALE
    return None


def parse_income_group(x: Any) -> Optional[IncomeGroup]:
    s = (_text_or_none(x) or '').upper()
    try:
        return IncomeGroup(s)
    except ValueError:
        return None


def parse_admin_level(x: Any) -> Optional[AdminLevel]:
    s = (_text_or_none(x) or '').upper()
    try:
        return AdminLevel(s)
    except ValueError:
        return None


def _check_columns(data: Dict[str, List[Any]], required: set, path: Path) -> None:
    missing = sorted(required - set(data))
    if missing:
        raise DataLoadError(f"{path.name} is missing required columns: {', '.join(missing)}")


def records_from_columns(data: Dict[str, List[Any]]) -> List[SurveyRecord]:
    """Build typed survey records from parsed columns.

    This is the single place where cells are coerced: numbers that are blank,
    non-numeric or non-finite become None, categorical codes are upper-cased
    and unknown codes become None.
    """
    n = len(next(iter(data.values()))) if data else 0
    blank = [None] * n
    cols = {name: data.get(name, blank) for name in (
        "iso3", "sexstring", "beginyear", "midyear", "endyear", "startage", "endage",
        "fail_meet_recs", "samplesize", "survey_admin", "questionnaire_cat", "adminlevel",
    )}

    records = []
    for i in range(n):
        records.append(SurveyRecord(
            country_code=normalize_code(cols["iso3"][i]),
            sex=parse_sex(cols["sexstring"][i]),
            begin_year=to_float_or_none(cols["beginyear"][i]),
            mid_year=to_float_or_none(cols["midyear"][i]),
            end_year=to_float_or_none(cols["endyear"][i]),
            start_age=to_float_or_none(cols["startage"][i]),
            end_age=to_float_or_none(cols["endage"][i]),
            value=to_float_or_none(cols["fail_meet_recs"][i]),
            sample_size=to_float_or_none(cols["samplesize"][i]),
            survey_admin=_text_or_none(cols["survey_admin"][i]),
            questionnaire_cat=_text_or_none(cols["questionnaire_cat"][i]),
            admin_level=parse_admin_level(cols["adminlevel"][i]),
        ))
    return records


def covariates_from_columns(data: Dict[str, List[Any]]) -> Dict[str, CountryCovariate]:
    n = len(next(iter(data.values()))) if data else 0
    passthrough = [c for c in data if c not in ("iso3", "wbinc21", "perurb")]

    out = {}
    for i in range(n):
        code = normalize_code(data["iso3"][i])
        if not code:
            continue
        extra = {c: data[c][i] for c in passthrough if data[c][i] is not None}
        out[code] = CountryCovariate(
            country_code=code,
            income_group=parse_income_group(data.get("wbinc21", [None] * n)[i]),
            urban_pct=to_float_or_none(data.get("perurb", [None] * n)[i]),
            extra=extra,
        )
    return out


def load_records(path: Union[str, Path], separator: str = ',') -> List[SurveyRecord]:
    path = Path(path)
    data = custom_csv_parser(path, separator=separator, text_columns=RECORD_TEXT_COLS)
    if not data:
        logger.warning("Records file %s is empty", path)
        return []
    _check_columns(data, RECORD_REQUIRED_COLS, path)
    records = records_from_columns(data)
    missing_values = sum(1 for r in records if r.value is None)
    logger.info("Loaded %d survey records from %s (%d without a usable outcome)",
                len(records), path, missing_values)
    return records


def load_covariates(path: Union[str, Path], separator: str = ',') -> Dict[str, CountryCovariate]:
    path = Path(path)
    data = custom_csv_parser(path, separator=separator, text_columns=COVARIATE_TEXT_COLS)
    if not data:
        logger.warning("Covariates file %s is empty", path)
        return {}
    _check_columns(data, COVARIATE_REQUIRED_COLS, path)
    covariates = covariates_from_columns(data)
    logger.info("Loaded covariates for %d countries from %s", len(covariates), path)
    return covariates
