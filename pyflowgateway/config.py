"""
Configuration for pyflowgateway tools.

Settings are read from environment variables, or from a ``.env`` file in the
working directory:

    PGW_HOST           - Gateway IP address or hostname (default: 192.168.1.100)
    PGW_POLL_INTERVAL  - Seconds between status polls (default: 2.0)
    PGW_TIMEOUT        - HTTP timeout in seconds (default: 5)
    PGW_POOL_MAXSIZE   - Connection pool size, 0 disables keep-alive (default: 10)
    PGW_CACHE_EXPIRE   - Seconds to cache read responses (default: 1)
    PGW_DEBUG          - Enable debug logging (default: no)

Usage:

    from pyflowgateway.config import settings
    gw = pyflowgateway.Gateway(settings.host, timeout=settings.timeout)
"""
from pydantic import Field
from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    host: str = Field(default="192.168.1.100", alias="PGW_HOST")
    poll_interval: float = Field(default=2.0, gt=0, alias="PGW_POLL_INTERVAL")
    timeout: float = Field(default=5, gt=0, alias="PGW_TIMEOUT")
    pool_maxsize: int = Field(default=10, ge=0, alias="PGW_POOL_MAXSIZE")
    cache_expire: float = Field(default=1, ge=0, alias="PGW_CACHE_EXPIRE")
    debug: bool = Field(default=False, alias="PGW_DEBUG")

    model_config = {
        "env_file": ".env",
        "extra": "ignore",
        "case_sensitive": False,
        "populate_by_name": True,
    }


# Global settings instance
settings = Settings()
