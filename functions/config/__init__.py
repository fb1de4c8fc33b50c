"""CostScan configuration.

- settings: environment-driven settings
- secrets: provider API keys (Firebase Secrets / environment)
- ai_config: provider selection
- errors: error codes and exceptions
"""

from config.settings import settings
from config.errors import CostScanError, ErrorCode
from config.secrets import get_provider_api_key, get_secret

__all__ = [
    "settings",
    "CostScanError",
    "ErrorCode",
    "get_provider_api_key",
    "get_secret",
]
