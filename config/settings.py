"""Configuration settings for whoosh2garmin."""

import os
import logging
from pathlib import Path
from typing import Optional, Tuple
from dotenv import load_dotenv

# Load environment variables
load_dotenv()

# Logger for this module
logger = logging.getLogger(__name__)

# Base paths
APP_DIR = Path(os.getenv("WHOOSH2GARMIN_HOME", str(Path.home() / ".mywhoosh2garmin"))).expanduser()
TOKEN_DIR = APP_DIR

# Directory holding MyWhoosh activity files (no auto-detection, set it explicitly)
MYWHOOSH_DIR = os.getenv("MYWHOOSH_DIR")

# Garmin Connect credentials
GARMIN_EMAIL = os.getenv("GARMIN_EMAIL")
GARMIN_PASSWORD = os.getenv("GARMIN_PASSWORD")
GARMIN_DOMAIN = os.getenv("GARMIN_DOMAIN", "garmin.com")

# Flag to ensure deprecation warning is logged only once per process
_deprecation_warned = False


def get_garmin_credentials() -> Tuple[str, str]:
    """Get Garmin Connect credentials from environment variables.

    Prefers GARMIN_EMAIL and GARMIN_PASSWORD. If GARMIN_EMAIL is not set
    but GARMIN_USERNAME is present, uses GARMIN_USERNAME as email with a
    one-time deprecation warning.

    Returns:
        Tuple of (email, password)

    Raises:
        ValueError: If required credentials are not found
    """
    global _deprecation_warned

    email = os.getenv("GARMIN_EMAIL")
    password = os.getenv("GARMIN_PASSWORD")

    if email and password:
        return email, password

    # Fallback to GARMIN_USERNAME
    username = os.getenv("GARMIN_USERNAME")
    if username and password:
        if not _deprecation_warned:
            logger.warning(
                "GARMIN_USERNAME is deprecated. Please use GARMIN_EMAIL instead. "
                "GARMIN_USERNAME will be removed in a future version."
            )
            _deprecation_warned = True
        return username, password

    raise ValueError(
        "Garmin credentials not found. Set GARMIN_EMAIL and GARMIN_PASSWORD "
        "environment variables."
    )


def get_mywhoosh_dir(override: Optional[str] = None) -> Optional[Path]:
    """Resolve the activity directory from an explicit path or MYWHOOSH_DIR."""
    value = override or os.getenv("MYWHOOSH_DIR")
    if not value:
        return None
    return Path(value).expanduser()


# Garmin SSO / API endpoints
OAUTH_CONSUMER_URL = "https://thegarth.s3.amazonaws.com/oauth_consumer.json"
SSO_BASE_URL = "https://sso.{domain}"
CONNECT_API_URL = "https://connectapi.{domain}"
PREAUTHORIZED_PATH = "/oauth-service/oauth/preauthorized"
EXCHANGE_PATH = "/oauth-service/oauth/exchange/user/2.0"
UPLOAD_PATH = "/upload-service/upload"

# Client identification expected by each endpoint family
SSO_USER_AGENT = "com.garmin.android.apps.connectmobile"
API_USER_AGENT = "GCM-iOS-5.19.1.2"

# Network deadlines (seconds)
AUTH_TIMEOUT_SECONDS = 30
UPLOAD_TIMEOUT_SECONDS = 60

# Characters of a response body kept in error messages
BODY_PREVIEW_CHARS = 300


# Identity written into every corrected file
class SpoofDevice:
    """Device identity constants (Garmin Fenix 6S Pro)."""

    MANUFACTURER = 1  # garmin
    PRODUCT = 3288  # fenix6s
    SERIAL_NUMBER = 3420897194
    NAME = "Garmin Fenix 6S Pro"


# Activity file discovery
ACTIVITY_FILE_PATTERN = "MyNewActivity-*.fit"
SYNCED_SUFFIX = ".synced"
SYNC_WINDOW_DAYS = int(os.getenv("SYNC_WINDOW_DAYS", "30"))
OUTPUT_TIMESTAMP_FORMAT = "%Y-%m-%d_%H%M%S"

# Logging configuration
LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO")
LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
LOG_FILE = os.getenv("WHOOSH2GARMIN_LOG", "whoosh2garmin.log")
