"""
CLI Configuration Management
"""

import os
import json
from pathlib import Path
from dataclasses import dataclass, field, asdict
from typing import Optional, Dict, Any

from dotenv import find_dotenv, load_dotenv


DEFAULT_API_URL = "http://localhost:5000/api"


@dataclass
class CLIConfig:
    """Configuration for Light World CLI"""

    # API settings
    api_base_url: str = DEFAULT_API_URL
    timeout: int = 30

    # Output settings
    verbose: bool = False

    # Logging
    log_file: str = "logs/lightworld.log"
    log_format: str = "text"  # text, json
    log_level: str = "INFO"

    # Password recovery
    min_password_length: int = 8
    otp_ttl_seconds: int = 120

    # Paths
    config_dir: str = field(default_factory=lambda: str(Path.home() / ".lightworld"))

    def __post_init__(self):
        """Initialize paths and directories"""
        Path(self.config_dir).mkdir(parents=True, exist_ok=True)

        if not os.path.isabs(self.log_file):
            self.log_file = str(Path(self.config_dir) / self.log_file)

    @property
    def credentials_file(self) -> Path:
        return Path(self.config_dir) / "credentials.json"

    def load_from_file(self, config_path: str) -> None:
        """Load configuration from JSON file"""
        path = Path(config_path)
        if path.exists():
            with open(path) as f:
                data = json.load(f)
                for key, value in data.items():
                    if hasattr(self, key):
                        setattr(self, key, value)

    def save_to_file(self, config_path: Optional[str] = None) -> None:
        """Save configuration to JSON file"""
        path = Path(config_path or (Path(self.config_dir) / "config.json"))
        with open(path, 'w') as f:
            json.dump(self.to_dict(), f, indent=2)

    @classmethod
    def load_default(cls, config_dir: Optional[str] = None) -> "CLIConfig":
        """Load default configuration from user config directory"""
        config = cls(config_dir=config_dir) if config_dir else cls()
        default_config_path = Path(config.config_dir) / "config.json"
        if default_config_path.exists():
            config.load_from_file(str(default_config_path))

        # .env in the working directory, without clobbering real env vars
        load_dotenv(find_dotenv(usecwd=True), override=False)
        config._load_from_env()

        return config

    def _load_from_env(self) -> None:
        """Load configuration from environment variables"""
        env_mappings = {
            "LIGHTWORLD_API_URL": "api_base_url",
            "LIGHTWORLD_TIMEOUT": ("timeout", int),
            "LIGHTWORLD_VERBOSE": ("verbose", lambda x: x.lower() == "true"),
            "LIGHTWORLD_LOG_FORMAT": "log_format",
            "LIGHTWORLD_LOG_LEVEL": "log_level",
            "LIGHTWORLD_MIN_PASSWORD_LENGTH": ("min_password_length", int),
            "LIGHTWORLD_OTP_TTL": ("otp_ttl_seconds", int),
        }

        for env_var, mapping in env_mappings.items():
            value = os.environ.get(env_var)
            if value:
                if isinstance(mapping, tuple):
                    attr, converter = mapping
                    setattr(self, attr, converter(value))
                else:
                    setattr(self, mapping, value)

    def to_dict(self) -> Dict[str, Any]:
        """Convert config to dictionary"""
        return asdict(self)
