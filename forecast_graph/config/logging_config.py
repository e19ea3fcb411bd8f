import os

# Output
LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO")
LOG_FORMAT = os.getenv("LOG_FORMAT", "json")

# Record metadata
LOG_SERVICE = os.getenv("LOG_SERVICE", "forecast-graph-core")
APP_ENV = os.getenv("APP_ENV", "dev")

# Keys whose values are replaced with [REDACTED]
LOG_REDACT_KEYS = {
    "authorization",
    "cookie",
    "set_cookie",
    "password",
    "token",
    "secret",
    "api_key",
    "x_api_key",
} | {
    key.strip().lower().replace("-", "_")
    for key in os.getenv("LOG_REDACT_KEYS", "").split(",")
    if key.strip()
}
