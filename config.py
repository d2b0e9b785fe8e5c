"""
Configuration discovery and loading for the ads CLI.

The config file (.adsenv) is a plain KEY=VALUE file with '#' comments:

    API_KEY=sk-xxxx
    BASE_URL=https://api.deepseek.com/chat/completions
    MODEL=deepseek-chat              # optional
    SYSTEM_PROMPT=You are terse.     # optional

Every call returns a fresh APIConfig; nothing is cached at module level.
"""

import logging
import os
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, List, Optional

from dotenv import dotenv_values

from errors import ConfigurationError

logger = logging.getLogger(__name__)

DEFAULT_MODEL = "deepseek-chat"
DEFAULT_SYSTEM_PROMPT = "You are a helpful assistant."
CONFIG_FILENAME = ".adsenv"


@dataclass
class APIConfig:
    """Connection and model configuration"""
    api_key: str = ""
    base_url: str = ""
    model: str = DEFAULT_MODEL
    system_prompt: str = DEFAULT_SYSTEM_PROMPT
    timeout: int = 120  # HTTP timeout is client-side, not API parameter
    source: Optional[str] = None

    def validate(self) -> None:
        """Validate that required fields are present"""
        if not self.base_url:
            raise ConfigurationError(
                "BASE_URL is required. Provide via .adsenv or --base-url."
            )
        if not self.api_key:
            raise ConfigurationError(
                "API_KEY is required. Provide via .adsenv or --api-key."
            )

    def to_dict(self) -> Dict[str, Any]:
        """Shape printed by --print-env"""
        return {
            "configuration": {
                "api_key": self.api_key,
                "base_url": self.base_url,
                "model": self.model,
                "system_prompt": self.system_prompt,
                "source": self.source,
            },
            "constants": {
                "DEFAULT_MODEL": DEFAULT_MODEL,
                "DEFAULT_SYSTEM_PROMPT": DEFAULT_SYSTEM_PROMPT,
            },
        }


class ConfigManager:
    """Locates and loads .adsenv files"""

    # Maps file keys to APIConfig attributes
    KEYS = {
        "API_KEY": "api_key",
        "BASE_URL": "base_url",
        "MODEL": "model",
        "SYSTEM_PROMPT": "system_prompt",
    }

    @staticmethod
    def search_paths() -> List[Path]:
        return [
            Path(".") / CONFIG_FILENAME,
            Path.home() / CONFIG_FILENAME,
            Path.home() / ".config" / CONFIG_FILENAME,
            Path("/etc/ads") / CONFIG_FILENAME,
        ]

    @classmethod
    def locate(cls) -> Optional[Path]:
        """First readable config file in search order, or None"""
        for path in cls.search_paths():
            if path.is_file() and os.access(path, os.R_OK):
                return path
        return None

    @classmethod
    def load(cls, config_path: Optional[str] = None) -> APIConfig:
        """Load config from an explicit path or from the first discovered file"""
        if config_path:
            path = Path(config_path).expanduser()
            if not path.is_file():
                raise ConfigurationError(f"Config file not found: {config_path}")
        else:
            path = cls.locate()
            if path is None:
                raise ConfigurationError(
                    "Configuration file not found. Searched: "
                    + ", ".join(str(p) for p in cls.search_paths())
                )

        try:
            values = dotenv_values(path, encoding="utf-8")
        except (OSError, UnicodeDecodeError) as e:
            raise ConfigurationError(f"Failed to read {path}: {e}")

        config = APIConfig(source=str(path))
        for key, attr in cls.KEYS.items():
            value = values.get(key)
            # Blank values keep the defaults
            if value:
                setattr(config, attr, value.strip())

        logger.info(f"Loaded configuration: {path}")
        return config

    @staticmethod
    def apply_overrides(config: APIConfig, args) -> APIConfig:
        """Command line values win over the file"""
        if getattr(args, "base_url", None):
            config.base_url = args.base_url
        if getattr(args, "api_key", None):
            config.api_key = args.api_key
        if getattr(args, "model", None):
            config.model = args.model
        if getattr(args, "system", None):
            config.system_prompt = args.system
        return config
