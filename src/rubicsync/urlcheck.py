"""
Base-URL validation for outbound API endpoints.

Every configured endpoint passes through validate_base_url() before a client
is built, so a misconfigured environment fails at load time instead of on the
first request. Checks, in order:

  1. the string parses as an absolute URL
  2. the scheme is https
  3. no user/password is embedded in the URL
  4. the provider is known
  5. the hostname is in that provider's allowlist
"""
from typing import Dict, FrozenSet
from urllib.parse import urlsplit

from rubicsync.errors import ConfigurationError

ALLOWED_HOSTS: Dict[str, FrozenSet[str]] = {
    "rubic": frozenset({
        "rubicexternalapi.azurewebsites.net",
        "rubicexternalapitest.azurewebsites.net",  # test tenant
    }),
    "tripletex": frozenset({
        "tripletex.no",
        "api.tripletex.io",  # sandbox
    }),
}


def validate_base_url(base_url: str, provider: str) -> None:
    """Raise ConfigurationError unless base_url is safe to call for provider.

    Args:
        base_url: Configured base endpoint, e.g. "https://tripletex.no/v2".
        provider: Provider key in ALLOWED_HOSTS ("rubic" or "tripletex").

    Raises:
        ConfigurationError: describing the first check that failed.
    """
    try:
        parsed = urlsplit(base_url)
        hostname = parsed.hostname
        parsed.port  # raises ValueError on a malformed port
    except (ValueError, TypeError, AttributeError):
        raise ConfigurationError(f'Invalid base URL: could not parse "{base_url}".')

    if not parsed.scheme or not hostname:
        raise ConfigurationError(f'Invalid base URL: could not parse "{base_url}".')

    if parsed.scheme.lower() != "https":
        raise ConfigurationError("Base URL must use HTTPS.")

    if parsed.username or parsed.password:
        raise ConfigurationError("Base URL must not contain embedded credentials.")

    hosts = ALLOWED_HOSTS.get(provider)
    if hosts is None:
        raise ConfigurationError(f'Unknown provider "{provider}".')

    hostname = hostname.lower().rstrip(".")
    if hostname not in hosts:
        raise ConfigurationError(
            f'Base URL hostname "{hostname}" is not allowed for provider "{provider}". '
            f"Expected one of: {', '.join(sorted(hosts))}"
        )
