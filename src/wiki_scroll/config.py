from __future__ import annotations

import json
import logging
import os
from dataclasses import asdict, dataclass, fields
from datetime import datetime
from typing import Any, Dict, Optional
from urllib.parse import urlsplit

# --- Configuration ---
API_URL = "https://en.wikipedia.org/w/api.php"
HTTP_TIMEOUT = 15.0
HTTP_RETRIES = 3
RANDOM_BATCH_SIZE = 40
EXTRACT_CHARS = 1000
THUMBNAIL_SIZE = 400
RELATED_LIMIT = 10
MAX_WORKERS = 8
PROXIMITY_THRESHOLD = 3

CONFIG_PATH = os.path.expanduser("~/.config/wikiscroll/config.json")

USER_AGENT = "WikiScroll/0.1 (https://github.com/wikiscroll/wikiscroll)"

# --- Logging ---
logger = logging.getLogger("wikiscroll")


def setup_logging(debug: bool = False) -> Optional[str]:
    """Configure logging."""
    if not debug:
        logging.basicConfig(level=logging.CRITICAL, handlers=[logging.NullHandler()])
        return None

    ts = datetime.now().strftime("%Y%m%dT%H%M%S")
    pid = os.getpid()
    debug_path = f"/tmp/wikiscroll_debug_{ts}_{pid}.log"

    logging.basicConfig(
        level=logging.DEBUG,
        filename=debug_path,
        filemode="a",
        format="%(asctime)s - %(levelname)s - %(name)s - %(message)s",
    )

    logger.debug("Debug logging enabled to %s", debug_path)
    return debug_path


@dataclass(frozen=True)
class FeedConfig:
    api_url: str = API_URL
    user_agent: str = USER_AGENT
    http_timeout: float = HTTP_TIMEOUT
    http_retries: int = HTTP_RETRIES
    random_batch_size: int = RANDOM_BATCH_SIZE
    extract_chars: int = EXTRACT_CHARS
    thumbnail_size: int = THUMBNAIL_SIZE
    related_limit: int = RELATED_LIMIT
    max_workers: int = MAX_WORKERS
    proximity_threshold: int = PROXIMITY_THRESHOLD

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "FeedConfig":
        """Build a config from a raw dict, keeping defaults for bad or unknown keys."""
        defaults = cls()
        values: Dict[str, Any] = {}
        for field in fields(cls):
            if field.name not in data:
                continue
            raw = data[field.name]
            default = getattr(defaults, field.name)
            if isinstance(default, str):
                if isinstance(raw, str) and raw.strip():
                    values[field.name] = raw.strip()
                    continue
            else:
                try:
                    value = type(default)(raw)
                except (TypeError, ValueError, OverflowError):
                    value = None
                if value is not None and not isinstance(raw, bool) and value > 0:
                    values[field.name] = value
                    continue
            logger.warning(
                "Ignoring invalid config value %s=%r, using %r",
                field.name,
                raw,
                default,
            )
        return cls(**values)

    @property
    def site_url(self) -> str:
        """Origin of the configured API endpoint, used to link to pages."""
        parts = urlsplit(self.api_url)
        return f"{parts.scheme}://{parts.netloc}"

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


def ensure_config_file_exists() -> None:
    """Write the default config file if the user's config file is not found."""
    if not os.path.exists(CONFIG_PATH):
        logger.info("Config file not found at %s, creating default.", CONFIG_PATH)
        save_config(FeedConfig().to_dict())


def load_config() -> Dict[str, Any]:
    """Load the main configuration file."""
    ensure_config_file_exists()
    try:
        with open(CONFIG_PATH, "r") as f:
            config = json.load(f)
            logger.info("Loaded config from %s", CONFIG_PATH)
            return config
    except (IOError, json.JSONDecodeError) as e:
        logger.error("Failed to load config from %s: %s", CONFIG_PATH, e)
        return {}


def load_feed_config() -> FeedConfig:
    config = load_config()
    if not isinstance(config, dict):
        logger.error("Config at %s is not a JSON object, using defaults", CONFIG_PATH)
        return FeedConfig()
    return FeedConfig.from_dict(config)


def save_config(config: Dict[str, Any]) -> None:
    """Save the main configuration file."""
    try:
        os.makedirs(os.path.dirname(CONFIG_PATH), exist_ok=True)
        with open(CONFIG_PATH, "w") as f:
            json.dump(config, f, indent=2)
        logger.info("Saved config to %s", CONFIG_PATH)
    except IOError as e:
        logger.error("Failed to save config to %s: %s", CONFIG_PATH, e)
