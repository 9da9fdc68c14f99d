"""
Provider configuration for SyntropyStack.

Resolves the access token and API URL from explicit values or the
environment, and sets up logging for the CLI. The resolved configuration is
an immutable value that is passed down to every operation.
"""

from dataclasses import dataclass
from typing import Any, Mapping, Optional
from urllib.parse import urlparse
import logging
import os

from syntropy.exceptions import ConfigurationError

# Configure logging
logger = logging.getLogger(__name__)

ACCESS_TOKEN_ENV = "SYNTROPY_ACCESS_TOKEN"
API_URL_ENV = "SYNTROPY_API_URL"
DEFAULT_API_URL = "https://api.syntropystack.com"
DEFAULT_TIMEOUT = 30.0

LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s: %(message)s"


@dataclass(frozen=True)
class ProviderConfig:
    """
    Resolved provider settings.

    Args:
        access_token: Platform access token sent with every request
        api_url: Base URL of the platform API (no trailing slash)
        timeout: Per-request timeout in seconds
    """

    access_token: str
    api_url: str = DEFAULT_API_URL
    timeout: float = DEFAULT_TIMEOUT

    def __repr__(self) -> str:
        return (
            f"ProviderConfig(access_token='***', api_url={self.api_url!r}, "
            f"timeout={self.timeout!r})"
        )


def _validate_api_url(api_url: str) -> str:
    parsed = urlparse(api_url)
    if parsed.scheme not in ("http", "https") or not parsed.netloc:
        raise ConfigurationError(
            "api_url must be an absolute http(s) URL", context={"api_url": api_url}
        )
    return api_url.rstrip("/")


def load_provider_config(
    access_token: Optional[str] = None,
    api_url: Optional[str] = None,
    timeout: Optional[float] = None,
    env: Optional[Mapping[str, str]] = None,
) -> ProviderConfig:
    """
    Build a ProviderConfig from explicit values with environment fallback.

    Explicit values always win. When a value is None the matching
    environment variable is used (SYNTROPY_ACCESS_TOKEN, SYNTROPY_API_URL).

    Args:
        access_token: Access token from provider configuration
        api_url: API URL from provider configuration
        timeout: Request timeout in seconds
        env: Environment mapping (defaults to os.environ)

    Returns:
        Resolved ProviderConfig

    Raises:
        ConfigurationError: If no access token is available or the URL is invalid
    """
    if env is None:
        env = os.environ

    if access_token is None:
        access_token = env.get(ACCESS_TOKEN_ENV, "")
        if access_token:
            logger.debug(f"Using access token from {ACCESS_TOKEN_ENV}")
    if not access_token:
        raise ConfigurationError(
            f"access_token is not set. Configure it on the provider or export {ACCESS_TOKEN_ENV}"
        )

    if api_url is None:
        api_url = env.get(API_URL_ENV) or DEFAULT_API_URL
    api_url = _validate_api_url(api_url)

    if timeout is None:
        timeout = DEFAULT_TIMEOUT
    if timeout <= 0:
        raise ConfigurationError("timeout must be positive", context={"timeout": timeout})

    logger.info(f"Provider configured for {api_url}")
    return ProviderConfig(access_token=access_token, api_url=api_url, timeout=float(timeout))


def config_from_block(block: Mapping[str, Any], env: Optional[Mapping[str, str]] = None) -> ProviderConfig:
    """Build a ProviderConfig from a parsed `provider "syntropystack"` block."""
    timeout = block.get("timeout")
    return load_provider_config(
        access_token=block.get("access_token"),
        api_url=block.get("api_url"),
        timeout=float(timeout) if timeout is not None else None,
        env=env,
    )


def configure_logging(debug: bool = False) -> None:
    """Configure root logging for CLI runs."""
    level = logging.DEBUG if debug else logging.WARNING
    logging.basicConfig(level=level, format=LOG_FORMAT)
    # urllib3 is chatty at DEBUG
    logging.getLogger("urllib3").setLevel(logging.INFO if debug else logging.WARNING)
