"""
Signing Client Configuration

Settings are read from environment variables (and a .env file if present).
Supports test (sandbox) and production modes.

Configuration:
- SIGNFLOW_API_TOKEN: Bearer token issued by the platform
- SIGNFLOW_MODE: 'test' or 'prod' ('production' also accepted; defaults to 'test')
- SIGNFLOW_API_URL: Override the API base URL for the selected mode
- SIGNFLOW_TIMEOUT / SIGNFLOW_UPLOAD_TIMEOUT: Request timeouts in seconds
- SIGNFLOW_MAX_RETRIES / SIGNFLOW_RETRY_DELAY: Retry policy for read calls
- SIGNFLOW_POLL_INTERVAL / SIGNFLOW_POLL_BACKOFF / SIGNFLOW_POLL_MAX_INTERVAL:
  Status polling schedule
"""

import os
from dataclasses import dataclass, replace
from typing import Mapping, Optional

from dotenv import load_dotenv

from .exceptions import ConfigurationError

SANDBOX_API_URL = 'https://api.sandbox.signflow.example/v1'
PRODUCTION_API_URL = 'https://api.signflow.example/v1'
MODE_ALIASES = {'production': 'prod', 'sandbox': 'test'}

# Request timeouts
DEFAULT_TIMEOUT = 30
DEFAULT_UPLOAD_TIMEOUT = 60  # Longer timeout for file uploads


@dataclass(frozen=True)
class SigningConfig:
    """Connection and polling settings passed to client constructors."""
    credential: Optional[str] = None
    mode: str = 'test'
    base_url: str = SANDBOX_API_URL
    timeout: float = DEFAULT_TIMEOUT
    upload_timeout: float = DEFAULT_UPLOAD_TIMEOUT
    max_retries: int = 3
    retry_delay: float = 1.0
    poll_interval: float = 5.0
    poll_backoff: float = 1.5
    poll_max_interval: float = 60.0

    def __post_init__(self):
        if self.poll_interval <= 0:
            raise ConfigurationError(f"poll_interval must be greater than 0, got {self.poll_interval}")
        if self.poll_backoff < 1:
            raise ConfigurationError(f"poll_backoff must be at least 1, got {self.poll_backoff}")
        if self.poll_max_interval <= 0:
            raise ConfigurationError(
                f"poll_max_interval must be greater than 0, got {self.poll_max_interval}"
            )

    @property
    def is_production(self) -> bool:
        return self.mode == 'prod'

    def with_credential(self, credential: str) -> 'SigningConfig':
        """Return a copy carrying a different credential."""
        return replace(self, credential=credential)

    @classmethod
    def from_env(cls, environ: Optional[Mapping[str, str]] = None) -> 'SigningConfig':
        """
        Build a config from environment variables.

        Args:
            environ: Mapping to read instead of os.environ (the .env file
                is only loaded when reading the real environment)

        Raises:
            ConfigurationError: If a value cannot be parsed or is out of range
        """
        if environ is None:
            load_dotenv()
            environ = os.environ

        mode = environ.get('SIGNFLOW_MODE', 'test').strip().lower()
        mode = MODE_ALIASES.get(mode, mode)
        if mode not in ('test', 'prod'):
            raise ConfigurationError(f"SIGNFLOW_MODE must be 'test' or 'prod', got {mode!r}")

        default_url = PRODUCTION_API_URL if mode == 'prod' else SANDBOX_API_URL
        base_url = environ.get('SIGNFLOW_API_URL') or default_url

        return cls(
            credential=environ.get('SIGNFLOW_API_TOKEN') or None,
            mode=mode,
            base_url=base_url.rstrip('/'),
            timeout=_number(environ, 'SIGNFLOW_TIMEOUT', DEFAULT_TIMEOUT),
            upload_timeout=_number(environ, 'SIGNFLOW_UPLOAD_TIMEOUT', DEFAULT_UPLOAD_TIMEOUT),
            max_retries=int(_number(environ, 'SIGNFLOW_MAX_RETRIES', 3)),
            retry_delay=_number(environ, 'SIGNFLOW_RETRY_DELAY', 1.0),
            poll_interval=_number(environ, 'SIGNFLOW_POLL_INTERVAL', 5.0),
            poll_backoff=_number(environ, 'SIGNFLOW_POLL_BACKOFF', 1.5),
            poll_max_interval=_number(environ, 'SIGNFLOW_POLL_MAX_INTERVAL', 60.0),
        )


def _number(environ: Mapping[str, str], key: str, default: float) -> float:
    raw = environ.get(key)
    if raw is None or raw.strip() == '':
        return default
    try:
        value = float(raw)
    except ValueError:
        raise ConfigurationError(f"{key} must be a number, got {raw!r}")
    if value < 0:
        raise ConfigurationError(f"{key} must not be negative, got {raw!r}")
    return value
