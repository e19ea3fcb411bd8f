import os

# Dates listed in the month-0 SEED diagnostic before truncating with "(and N more)"
SEED_AVAILABLE_DATES_PREVIEW = int(os.getenv("FORECAST_SEED_DATES_PREVIEW", "10"))

# Upper bound on the number of months a single request may evaluate
MAX_FORECAST_MONTHS = int(os.getenv("FORECAST_MAX_MONTHS", "600"))
