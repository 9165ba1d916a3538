from __future__ import annotations
from pathlib import Path
import fcntl
from typing import Any, Dict
import yaml

from animuse.util.logger import get_logger

logger = get_logger("app_configuration")


CONFIG_PATH = Path("./config/app_config.yml").resolve()

DEFAULT_ANILIST_URL = "https://graphql.anilist.co"


class AiringSettings:
    """Typed view over the ``airing`` section of the application config.

    Every property falls back to its default when the key is missing or the
    value cannot be coerced, so a half-written config never stops the poller.
    """

    def __init__(self, data: Dict[str, Any] | None = None) -> None:
        self._data: Dict[str, Any] = data if isinstance(data, dict) else {}

    def _number(self, key: str, default: float, minimum: float = 0.0) -> float:
        value = self._data.get(key, default)
        try:
            number = float(value)
        except (TypeError, ValueError):
            logger.warning("[APP CONFIGURATION] Invalid value %r for airing.%s, using %s", value, key, default)
            return default
        if number < minimum:
            logger.warning("[APP CONFIGURATION] airing.%s=%s is below %s, using %s", key, number, minimum, default)
            return default
        return number

    @property
    def interval_seconds(self) -> float:
        """Seconds between two poll cycles. Default 600 (10 minutes)."""
        return self._number("interval_seconds", 600.0, minimum=1.0)

    @property
    def warmup_seconds(self) -> float:
        """Delay before the first poll cycle after startup. Default 30."""
        return self._number("warmup_seconds", 30.0)

    @property
    def due_window_seconds(self) -> int:
        """Look-ahead used by due-set selection and the imminent check. Default 1200."""
        return int(self._number("due_window_seconds", 1200.0))

    @property
    def batch_size(self) -> int:
        """Maximum number of media IDs per AniList request. Default 50."""
        return int(self._number("batch_size", 50.0, minimum=1.0))

    @property
    def track_button_timeout_seconds(self) -> float:
        """How long the "Track +" button stays on a notification. Default 600."""
        return self._number("track_button_timeout_seconds", 600.0, minimum=1.0)

    @property
    def anilist_url(self) -> str:
        return str(self._data.get("anilist_url") or DEFAULT_ANILIST_URL)

    @property
    def anilist_retries(self) -> int:
        return int(self._number("anilist_retries", 3.0))

    @property
    def request_timeout_seconds(self) -> float:
        return self._number("request_timeout_seconds", 20.0, minimum=1.0)


class AppConfig:
    """File-lock based accessor around the YAML-based application configuration.

    The class caches contents of ``./config/app_config.yml``, exposes dictionary-like
    access helpers, and resolves airing settings through :class:`AiringSettings`.
    Uses fcntl file locks for safe concurrent access across processes.
    """

    def __init__(self, config_path: Path) -> None:
        self.config_path = config_path
        self._data: Dict[str, Any] = {}
        self.reload()

    # --------------------------
    # Private helpers
    # --------------------------
    def load_from_disk(self) -> Dict[str, Any]:
        try:
            with self.config_path.open("r", encoding="utf-8") as f:
                fcntl.flock(f.fileno(), fcntl.LOCK_SH)
                data = yaml.safe_load(f)
                fcntl.flock(f.fileno(), fcntl.LOCK_UN)
                if not isinstance(data, dict):
                    logger.warning("[APP CONFIGURATION] Config %s is not a mapping, ignoring it.", self.config_path)
                    return {}
                return data
        except FileNotFoundError:
            logger.error("[APP CONFIGURATION] Config file %s not found.", self.config_path)
        except Exception as exc:
            logger.error("[APP CONFIGURATION] Failed to load config %s: %s", self.config_path, exc)
        return {}

    # --------------------------
    # Public API
    # --------------------------
    def reload(self) -> Dict[str, Any]:
        """Reload configuration from disk and return the loaded mapping.

        Returns the raw mapping that was loaded (an empty dict on error).
        """
        self._data = self.load_from_disk()
        return self._data

    @property
    def data(self) -> Dict[str, Any]:
        """Return the current cached configuration mapping.

        The returned dict is the internal cache (shallow reference). Callers
        should not mutate it.
        """
        return self._data

    def get(self, key: str, default: Any = None) -> Any:
        """Safe lookup for top-level configuration keys."""
        return self._data.get(key, default)

    # --------------------------
    # High-level shortcuts
    # --------------------------
    @property
    def airing(self) -> AiringSettings:
        """Return the airing scheduler settings."""
        return AiringSettings(self._data.get("airing"))

    @property
    def database_path(self) -> Path:
        """Return the SQLite database path. Default ``./data/app.db``."""
        value = self._data.get("database_path") or "./data/app.db"
        return Path(str(value)).resolve()


# Shared application-wide configuration instance
app_config = AppConfig(CONFIG_PATH)
