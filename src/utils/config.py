# ========================
# src/utils/config.py
# ========================

"""
Configuration Management

Centralized configuration for the baby-names pipeline with environment support.
The core components take explicit parameters; only the entry points read this.
"""

import json
import os
from pathlib import Path
from typing import Any, Dict, List, Optional


def _env_bool(name: str, default: str) -> bool:
    return os.getenv(name, default).strip().lower() in ('1', 'true', 'yes', 'on')


class Config:
    """
    Configuration class for the pipeline.
    Supports environment variables and default values.
    """

    def __init__(self, config_dict: Optional[Dict[str, Any]] = None):
        """
        Initialize configuration.

        Args:
            config_dict (dict): Optional configuration overrides
        """
        # Remote source
        self.SOURCE_URL = os.getenv('NAMES_SOURCE_URL', 'https://health.data.ny.gov/resource/jxy9-yhdk.csv')
        self.PAGE_SIZE = int(os.getenv('NAMES_PAGE_SIZE', '1000'))
        self.LIMIT_PARAM = os.getenv('NAMES_LIMIT_PARAM', '$limit')
        self.OFFSET_PARAM = os.getenv('NAMES_OFFSET_PARAM', '$offset')
        self.ORDER_BY = os.getenv('NAMES_ORDER_BY', ':id')
        self.REQUEST_TIMEOUT = float(os.getenv('NAMES_REQUEST_TIMEOUT', '60'))

        # Failure policy
        self.MAX_RETRIES = int(os.getenv('NAMES_MAX_RETRIES', '0'))
        self.RETRY_BACKOFF = float(os.getenv('NAMES_RETRY_BACKOFF', '0.5'))
        self.CONFIRM_SHORT_PAGES = _env_bool('NAMES_CONFIRM_SHORT_PAGES', 'true')

        # Aggregation
        self.TOP_N = int(os.getenv('NAMES_TOP_N', '10'))
        self.EXPECTED_SEX_CODES = [
            code.strip() for code in os.getenv('NAMES_SEX_CODES', 'F,M').split(',') if code.strip()
        ]

        # Output
        self.OUTPUT_DIR = os.getenv('NAMES_OUTPUT_DIR', 'data/processed')

        # Logging Configuration
        self.LOG_LEVEL = os.getenv('LOG_LEVEL', 'INFO')
        self.LOG_DIR = os.getenv('LOG_DIR', 'logs')

        # API server
        self.API_PORT = int(os.getenv('API_PORT', '8000'))

        # Override with provided config
        if config_dict:
            self._update_from_dict(config_dict)

    def _update_from_dict(self, config_dict: Dict[str, Any]) -> None:
        """Update configuration from dictionary."""
        for key, value in config_dict.items():
            if hasattr(self, key.upper()):
                setattr(self, key.upper(), value)

    def source_params(self) -> Dict[str, str]:
        """Static query parameters sent with every page request."""
        return {'$order': self.ORDER_BY} if self.ORDER_BY else {}

    def fetcher_options(self) -> Dict[str, Any]:
        """Keyword arguments for PaginatedFetcher."""
        return {
            'source_url': self.SOURCE_URL,
            'page_size': self.PAGE_SIZE,
            'timeout': self.REQUEST_TIMEOUT,
            'limit_param': self.LIMIT_PARAM,
            'offset_param': self.OFFSET_PARAM,
            'extra_params': self.source_params(),
            'confirm_short_pages': self.CONFIRM_SHORT_PAGES,
            'max_retries': self.MAX_RETRIES,
            'retry_backoff': self.RETRY_BACKOFF,
        }

    def ensure_directories(self) -> None:
        """Create output and log directories if they don't exist."""
        for path in (Path(self.OUTPUT_DIR), Path(self.LOG_DIR)):
            path.mkdir(parents=True, exist_ok=True)

    def validate_config(self) -> Dict[str, bool]:
        """
        Validate configuration values.

        Returns:
            dict: Validation results for each setting
        """
        validations = {}

        validations['source_url'] = str(self.SOURCE_URL).startswith(('http://', 'https://'))
        validations['page_size'] = int(self.PAGE_SIZE) > 0
        validations['top_n'] = int(self.TOP_N) > 0
        validations['request_timeout'] = float(self.REQUEST_TIMEOUT) > 0
        validations['max_retries'] = int(self.MAX_RETRIES) >= 0
        validations['retry_backoff'] = float(self.RETRY_BACKOFF) >= 0
        validations['sex_codes'] = len(self.EXPECTED_SEX_CODES) > 0
        validations['api_port'] = 1000 <= int(self.API_PORT) <= 65535

        valid_log_levels = ['DEBUG', 'INFO', 'WARNING', 'ERROR', 'CRITICAL']
        validations['log_level'] = str(self.LOG_LEVEL).upper() in valid_log_levels

        return validations

    def invalid_settings(self) -> List[str]:
        return [name for name, ok in self.validate_config().items() if not ok]

    def to_dict(self) -> Dict[str, Any]:
        """Convert configuration to dictionary."""
        return {
            attr: getattr(self, attr)
            for attr in dir(self)
            if attr.isupper() and not callable(getattr(self, attr))
        }

    def save_to_file(self, file_path: str) -> None:
        """Save configuration to JSON file."""
        with open(file_path, 'w') as f:
            json.dump(self.to_dict(), f, indent=2, default=str)

    @classmethod
    def load_from_file(cls, file_path: str) -> 'Config':
        """Load configuration from JSON file."""
        with open(file_path, 'r') as f:
            config_dict = json.load(f)
        return cls(config_dict)

    def __str__(self) -> str:
        """String representation of configuration."""
        lines = ["Configuration Settings:"]
        config_dict = self.to_dict()
        for key, value in sorted(config_dict.items()):
            lines.append(f"  {key}: {value}")
        return "\n".join(lines)
