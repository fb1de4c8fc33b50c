"""CostScan configuration settings.

Loads configuration from environment variables with sensible defaults.
Secrets are loaded via Firebase Secrets Manager (production) or environment variables (emulator).
"""

import os
from typing import Optional
from dataclasses import dataclass, field
from dotenv import load_dotenv

# Load .env file for non-secret configuration (emulator hosts, provider choice, etc.)
# Secrets should come from Firebase Secrets Manager or environment variables
load_dotenv()


@dataclass
class Settings:
    """Application settings loaded from environment variables.

    Note: Provider API keys are accessed via the config.secrets module and
    resolved into an AIConfig by config.ai_config, never read from this class.
    """

    # AI provider selection (non-secrets)
    ai_provider: Optional[str] = field(default_factory=lambda: os.getenv("AI_PROVIDER") or None)
    ai_model: Optional[str] = field(default_factory=lambda: os.getenv("AI_MODEL") or None)
    llm_temperature: float = field(default_factory=lambda: float(os.getenv("LLM_TEMPERATURE", "0.1")))
    llm_max_tokens: int = field(default_factory=lambda: int(os.getenv("LLM_MAX_TOKENS", "4000")))

    # Firebase Configuration
    use_firebase_emulators: bool = field(default_factory=lambda: os.getenv("USE_FIREBASE_EMULATORS", "false").lower() == "true")
    storage_bucket: Optional[str] = field(default_factory=lambda: os.getenv("STORAGE_BUCKET"))

    # Intake Configuration
    max_upload_bytes: int = field(default_factory=lambda: int(os.getenv("MAX_UPLOAD_BYTES", str(50 * 1024 * 1024))))
    file_timeout_seconds: float = field(default_factory=lambda: float(os.getenv("FILE_TIMEOUT_SECONDS", "120")))

    # Localization Configuration
    default_country: str = field(default_factory=lambda: os.getenv("DEFAULT_COUNTRY", "US"))
    localization_config_path: Optional[str] = field(default_factory=lambda: os.getenv("LOCALIZATION_CONFIG_PATH"))
    exchange_rate_api_url: Optional[str] = field(default_factory=lambda: os.getenv("EXCHANGE_RATE_API_URL"))
    exchange_rate_timeout_seconds: int = field(default_factory=lambda: int(os.getenv("EXCHANGE_RATE_TIMEOUT_SECONDS", "10")))

    # Logging
    log_level: str = field(default_factory=lambda: os.getenv("LOG_LEVEL", "INFO"))

    @property
    def is_emulator_mode(self) -> bool:
        """Check if running in emulator mode."""
        return self.use_firebase_emulators


# Singleton settings instance
settings = Settings()
