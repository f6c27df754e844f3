import os
from pathlib import Path

APP_DIR = Path(__file__).parent.parent.resolve()
DATA_DIR = Path(os.getenv("INACTIVITY_DATA_DIR", str(APP_DIR / "data")))
DEFAULT_RECORDS_FILE = os.getenv("PINA_DATA_FILE", "pina_dataset.csv")
DEFAULT_COVARIATES_FILE = os.getenv("COVARIATES_FILE", "covariates.csv")
RECORDS_FILE = DATA_DIR / DEFAULT_RECORDS_FILE
COVARIATES_FILE = DATA_DIR / DEFAULT_COVARIATES_FILE

# Ranking cutoffs for the two dashboard views
TOP_N_OVERVIEW = int(os.getenv("TOP_N_OVERVIEW", "6"))
TOP_N_EXPLORER = int(os.getenv("TOP_N_EXPLORER", "10"))

LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO").upper()

# Fallback ranges used when the tables carry no usable bounds
DEFAULT_AGE_RANGE = (0.0, 100.0)
DEFAULT_YEAR_RANGE = (2000.0, 2030.0)
DEFAULT_URBAN_RANGE = (0.0, 100.0)
DEFAULT_VALUE_RANGE = (0.0, 1.0)

# Colour scale domain for the choropleth (10% -> 60%+)
COLOR_DOMAIN = (0.1, 0.6)
