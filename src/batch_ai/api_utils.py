"""API utils"""

import os

from dotenv import load_dotenv

from batch_ai.exceptions import ConfigurationError


def api_key_env_var(provider: str) -> str:
    return f"{provider.upper()}_API_KEY"


def resolve_api_key(provider: str, api_key: str | None = None) -> str:
    """Resolve the API key of a provider.

    The ``<PROVIDER>_API_KEY`` environment variable (a ``.env`` file is loaded
    first, without overriding the real environment) wins over the explicitly
    configured key.

    Args:
        provider (str): The provider name, e.g. ``openai``
        api_key (str | None): The explicitly configured API key

    Raises:
        ConfigurationError: If no key is found in either place
    """
    load_dotenv(override=False)
    env_api_key = os.getenv(api_key_env_var(provider))
    if env_api_key:
        return env_api_key
    if api_key:
        return api_key
    raise ConfigurationError(
        f"API key not found for provider: {provider}. Either set {api_key_env_var(provider)} in the environment variables or provide it through the api_key configuration."
    )
