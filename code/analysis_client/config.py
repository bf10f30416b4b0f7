"""
Analysis client - Application Configuration
Loads all environment variables from .env and exposes them as typed settings.
"""
import os
from pathlib import Path
from dotenv import load_dotenv

# Load .env from the repo root (two levels up from this file)
_ENV_PATH = Path(__file__).parent.parent.parent / ".env"
load_dotenv(_ENV_PATH)


class Settings:
    # Analysis job backend
    API_BASE_URL: str = os.getenv("API_BASE_URL", "http://localhost:5000/api")
    API_TIMEOUT_S: float = float(os.getenv("API_TIMEOUT_S", "30"))
    # Bearer token attached by the auth layer; this client never obtains one itself
    API_AUTH_TOKEN: str = os.getenv("API_AUTH_TOKEN", "")

    # Job polling
    JOB_POLL_INTERVAL_S: float = float(os.getenv("JOB_POLL_INTERVAL_S", "2.0"))
    JOB_POLL_MAX_RETRIES: int = int(os.getenv("JOB_POLL_MAX_RETRIES", "2"))

    # Demo backend
    DEMO_HOST: str = os.getenv("DEMO_HOST", "127.0.0.1")
    DEMO_PORT: int = int(os.getenv("DEMO_PORT", "5000"))
    DEMO_STEP_DELAY_S: float = float(os.getenv("DEMO_STEP_DELAY_S", "1.0"))
    DEMO_JOB_TTL_H: int = int(os.getenv("DEMO_JOB_TTL_H", "24"))

    # Datadog
    DD_API_KEY: str = os.getenv("DD_API_KEY", "")
    DD_AGENT_HOST: str = os.getenv("DD_AGENT_HOST", "localhost")
    DD_STATSD_PORT: int = int(os.getenv("DD_STATSD_PORT", "8125"))
    DD_SERVICE: str = os.getenv("DD_SERVICE", "analysis-client")
    DD_ENV: str = os.getenv("DD_ENV", "development")

    # Application
    ENVIRONMENT: str = os.getenv("ENVIRONMENT", "development")
    LOG_LEVEL: str = os.getenv("LOG_LEVEL", "INFO")

    @property
    def metrics_configured(self) -> bool:
        """True when a real (non-placeholder) Datadog API key is set."""
        placeholders = {"", "your_datadog_api_key_here"}
        return self.DD_API_KEY not in placeholders

    @property
    def is_local(self) -> bool:
        return self.ENVIRONMENT.lower() in {"development", "dev", "local", "test"}


settings = Settings()
