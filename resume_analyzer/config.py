"""
Configuration management for the resume analyzer.
"""

import os
from typing import Optional

from pydantic import BaseModel, Field


def _env_bool(name: str, default: str) -> bool:
    return os.getenv(name, default).lower() == "true"


class AnalyzerConfig(BaseModel):
    """Configuration for resume analysis."""

    # API Keys
    openai_api_key: Optional[str] = Field(default=None)
    google_api_key: Optional[str] = Field(default=None)

    # LLM Model
    model: str = Field(default="gpt-4o-mini")
    temperature: float = Field(default=0.1)
    analysis_timeout_seconds: Optional[float] = Field(default=None)

    # Record store (Redis)
    redis_host: str = Field(default="localhost")
    redis_port: int = Field(default=6379)
    redis_db: int = Field(default=0)
    redis_password: Optional[str] = Field(default=None)
    record_key_prefix: str = Field(default="resume:")

    # Document store (S3-compatible)
    s3_endpoint: str = Field(default="")
    s3_access_key: str = Field(default="")
    s3_secret_key: str = Field(default="")
    s3_bucket: str = Field(default="resume-analyzer")
    s3_secure: bool = Field(default=True)

    # Preview rendering
    preview_resolution: int = Field(default=150)

    log_level: str = Field(default="INFO")

    @classmethod
    def from_env(cls, **overrides) -> "AnalyzerConfig":
        """Create configuration from environment variables."""
        timeout = os.getenv("ANALYSIS_TIMEOUT_SECONDS")

        config_dict = {
            # API Keys
            "openai_api_key": os.getenv("OPENAI_API_KEY"),
            "google_api_key": os.getenv("GOOGLE_API_KEY"),
            # Model
            "model": os.getenv("MODEL", "gpt-4o-mini"),
            "temperature": float(os.getenv("TEMPERATURE", "0.1")),
            "analysis_timeout_seconds": float(timeout) if timeout else None,
            # Records
            "redis_host": os.getenv("REDIS_HOST", "localhost"),
            "redis_port": int(os.getenv("REDIS_PORT", "6379")),
            "redis_db": int(os.getenv("REDIS_DB", "0")),
            "redis_password": os.getenv("REDIS_PASSWORD") or None,
            "record_key_prefix": os.getenv("RECORD_KEY_PREFIX", "resume:"),
            # Documents
            "s3_endpoint": os.getenv("S3_ENDPOINT", ""),
            "s3_access_key": os.getenv("S3_ACCESS_KEY", ""),
            "s3_secret_key": os.getenv("S3_SECRET_KEY", ""),
            "s3_bucket": os.getenv("S3_BUCKET", "resume-analyzer"),
            "s3_secure": _env_bool("S3_SECURE", "true"),
            # Preview
            "preview_resolution": int(os.getenv("PREVIEW_RESOLUTION", "150")),
            "log_level": os.getenv("LOG_LEVEL", "INFO"),
        }
        if overrides:
            clean_overrides = {k: v for k, v in overrides.items() if v is not None}
            config_dict.update(clean_overrides)

        return cls(**config_dict)

    def print_config_summary(self):
        """Print configuration summary for debugging."""
        print("\n" + "=" * 80)
        print("ANALYZER CONFIGURATION")
        print("=" * 80)
        print(f"Model: {self.model} (temperature {self.temperature})")
        if self.analysis_timeout_seconds:
            print(f"Analysis Timeout: {self.analysis_timeout_seconds}s")
        print(f"Redis: {self.redis_host}:{self.redis_port} (DB {self.redis_db})")
        print(f"Record Prefix: {self.record_key_prefix}")
        print(f"S3 Endpoint: {self.s3_endpoint or '(not set)'} → {self.s3_bucket}")
        print(f"Preview Resolution: {self.preview_resolution} dpi")
        print("=" * 80 + "\n")
