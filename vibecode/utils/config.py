"""Configuration management for the VibeCode enhancer."""

import os
from pathlib import Path
from typing import Any, Dict, Literal, Mapping, Optional

import yaml
from pydantic import BaseModel, Field
from dotenv import load_dotenv

from .errors import ConfigurationError
from .logger import get_logger
from .retry import RetryPolicy

logger = get_logger(__name__)

DEFAULT_CONFIG_PATH = Path("config/settings.yaml")


class Config(BaseModel):
    """
    Application configuration.
    
    Built once at startup and passed explicitly to every component that
    needs it. Nothing in the package reads configuration from module state.
    """
    
    # Application namespace used to scope stored documents
    app_id: str = Field(default="default-app-id", alias="APP_ID")
    initial_auth_token: Optional[str] = Field(default=None, alias="INITIAL_AUTH_TOKEN")
    
    # Identity + document store backend
    backend: Literal["supabase", "memory"] = Field(default="memory", alias="BACKEND")
    supabase_url: Optional[str] = Field(default=None, alias="SUPABASE_URL")
    supabase_anon_key: Optional[str] = Field(default=None, alias="SUPABASE_ANON_KEY")
    supabase_table: str = Field(default="vibe_documents", alias="SUPABASE_TABLE")
    
    # Generative image service
    gemini_api_key: str = Field(default="", alias="GEMINI_API_KEY")
    gemini_model: str = Field(default="gemini-2.5-flash-image-preview", alias="GEMINI_MODEL")
    gemini_base_url: str = Field(
        default="https://generativelanguage.googleapis.com/v1beta",
        alias="GEMINI_BASE_URL",
    )
    timeout_gemini_seconds: float = Field(default=120.0, alias="TIMEOUT_GEMINI_SECONDS")
    
    # Application Settings
    app_env: str = Field(default="development", alias="APP_ENV")
    log_level: str = Field(default="INFO", alias="LOG_LEVEL")
    prompt_poll_interval_seconds: float = Field(
        default=2.0, gt=0, alias="PROMPT_POLL_INTERVAL_SECONDS"
    )
    
    retry: RetryPolicy = Field(default_factory=RetryPolicy)
    
    class Config:
        populate_by_name = True
    
    def document_path(self, owner_id: str) -> str:
        """Path of the vibe document owned by a user."""
        return f"artifacts/{self.app_id}/users/{owner_id}/vibeData/current"


def load_config(
    path: Optional[Path] = None,
    env: Optional[Mapping[str, str]] = None,
) -> Config:
    """
    Load configuration from environment and an optional YAML file.
    
    Args:
        path: YAML settings file (defaults to config/settings.yaml, skipped if missing)
        env: Environment mapping (defaults to os.environ after loading .env)
        
    Returns:
        Config instance
        
    Raises:
        ConfigurationError: If configuration is invalid
    """
    if env is None:
        load_dotenv()
        env = os.environ
    
    settings_path = path or DEFAULT_CONFIG_PATH
    
    try:
        file_config: Dict[str, Any] = {}
        if settings_path.exists():
            with open(settings_path, "r", encoding="utf-8") as f:
                file_config = yaml.safe_load(f) or {}
        elif path is not None:
            raise ConfigurationError(f"Settings file not found at {settings_path}")
        
        # Environment wins over the YAML file for keys set in both
        known_aliases = {field.alias for field in Config.model_fields.values() if field.alias}
        env_config = {key: value for key, value in env.items() if key in known_aliases}
        
        config = Config(**{**file_config, **env_config})
    except ConfigurationError:
        raise
    except Exception as e:
        raise ConfigurationError(f"Failed to load configuration: {e}")
    
    if config.backend == "supabase" and not (config.supabase_url and config.supabase_anon_key):
        raise ConfigurationError(
            "SUPABASE_URL and SUPABASE_ANON_KEY are required for the supabase backend"
        )
    
    logger.info(
        "Configuration loaded successfully",
        extra={
            "environment": config.app_env,
            "backend": config.backend,
            "model": config.gemini_model,
            "max_retries": config.retry.max_retries,
        }
    )
    
    return config
