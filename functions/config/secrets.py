"""Secret access for CostScan functions.

Provider API keys live in Firebase Secrets (Google Cloud Secret Manager) in
production and in plain environment variables under the emulator. A missing
key is not an error: without any provider key the pipeline runs in simulation
mode.

Usage:
    from config.secrets import get_provider_api_key

    api_key = get_provider_api_key("anthropic")
"""

import os
from functools import lru_cache
from typing import Dict, Optional

import structlog

logger = structlog.get_logger(__name__)

# Provider name -> secret id
PROVIDER_SECRETS: Dict[str, str] = {
    "openai": "OPENAI_API_KEY",
    "anthropic": "ANTHROPIC_API_KEY",
    "google": "GOOGLE_AI_API_KEY",
}


def is_emulator_mode() -> bool:
    """True when running under the Firebase emulator suite."""
    return (
        os.environ.get('FUNCTIONS_EMULATOR') == 'true' or
        os.environ.get('FIRESTORE_EMULATOR_HOST') is not None
    )


def _gcp_project() -> Optional[str]:
    return os.environ.get('GCLOUD_PROJECT') or os.environ.get('GOOGLE_CLOUD_PROJECT')


def _from_environment(secret_id: str, source: str) -> Optional[str]:
    value = os.environ.get(secret_id) or None
    logger.debug("secret_lookup", secret_id=secret_id, source=source, found=bool(value))
    return value


def get_secret(secret_id: str) -> Optional[str]:
    """Read a secret, preferring Secret Manager outside the emulator.

    Args:
        secret_id: Secret name (e.g. 'OPENAI_API_KEY').

    Returns:
        The secret value, or None when it is not set anywhere.
    """
    project_id = _gcp_project()
    if is_emulator_mode() or not project_id:
        return _from_environment(secret_id, "environment")

    try:
        from google.cloud import secretmanager

        client = secretmanager.SecretManagerServiceClient()
        name = f"projects/{project_id}/secrets/{secret_id}/versions/latest"
        response = client.access_secret_version(request={"name": name})
        value = response.payload.data.decode("UTF-8") or None
        logger.debug("secret_lookup", secret_id=secret_id, source="secret_manager", found=bool(value))
        return value

    except Exception as e:
        logger.debug("secret_manager_lookup_failed", secret_id=secret_id, error=str(e))
        return _from_environment(secret_id, "environment_fallback")


@lru_cache(maxsize=None)
def get_provider_api_key(provider: str) -> Optional[str]:
    """Cached API key for an AI provider name; None for unknown providers."""
    secret_id = PROVIDER_SECRETS.get(provider.strip().lower())
    if secret_id is None:
        return None
    return get_secret(secret_id)


def get_provider_api_keys() -> Dict[str, Optional[str]]:
    """API key (or None) for every known provider."""
    return {provider: get_provider_api_key(provider) for provider in PROVIDER_SECRETS}


def clear_secret_cache() -> None:
    """Forget cached keys, e.g. after a secret rotation."""
    get_provider_api_key.cache_clear()
