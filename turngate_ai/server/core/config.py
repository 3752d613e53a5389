"""
Configuration Settings.

This module defines the application configuration using Pydantic's BaseSettings.
All values are bound from environment variables and the ``.env`` file.
"""

from typing import Dict, List, Optional

from pydantic import BaseModel, Field
from pydantic_settings import BaseSettings, SettingsConfigDict

# =====================================================================
# Grouped Configuration Models
# =====================================================================


class ProviderConfig(BaseModel):
    """OpenAI-compatible model provider configuration."""

    api_key: Optional[str] = Field(default=None, alias="LLM_API_KEY", description="Bearer token for the provider")
    model: str = Field(default="gpt-4o-mini", alias="LLM_MODEL", description="Model name")
    base_url: str = Field(
        default="https://api.openai.com/v1",
        alias="LLM_BASE_URL",
        description="Base URL of the chat-completions API",
    )
    request_timeout: float = Field(
        default=120.0, alias="LLM_REQUEST_TIMEOUT", description="HTTP timeout per provider request, in seconds"
    )

    model_config = {"populate_by_name": True}


class EngineSettings(BaseModel):
    """Execution engine tunables."""

    max_iterations: int = Field(
        default=20, alias="TURNGATE_AI_MAX_ITERATIONS", description="Provider round-trips allowed per invocation"
    )
    stream_throttle_ms: int = Field(
        default=50, alias="TURNGATE_AI_STREAM_THROTTLE_MS", description="Minimum interval between text delta events"
    )
    iteration_timeout_seconds: Optional[float] = Field(
        default=120.0,
        alias="TURNGATE_AI_ITERATION_TIMEOUT",
        description="Deadline for one provider stream; unset to disable",
    )
    temperature: float = Field(default=0.7, alias="TURNGATE_AI_TEMPERATURE")
    max_tokens: int = Field(default=4096, alias="TURNGATE_AI_MAX_TOKENS")

    model_config = {"populate_by_name": True}


class CORSConfig(BaseModel):
    """CORS configuration."""

    allow_origins: List[str] = Field(default=["*"], alias="CORS_ALLOW_ORIGINS")

    model_config = {"populate_by_name": True}


# =====================================================================
# Main Settings Class
# =====================================================================


class Settings(BaseSettings):
    """
    Application settings model.

    Flat fields are bound from the environment; the grouped views
    (``provider``, ``engine``, ``cors``) are derived from them.
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
        case_sensitive=True,
        populate_by_name=True,
    )

    # =====================================================================
    # Server
    # =====================================================================
    server_host: str = Field(default="0.0.0.0", alias="TURNGATE_AI_SERVER_HOST")
    server_port: int = Field(default=8000, alias="TURNGATE_AI_SERVER_PORT")
    log_level: str = Field(
        default="INFO",
        description="Logging level (DEBUG, INFO, WARNING, ERROR, CRITICAL)",
        alias="TURNGATE_AI_LOG_LEVEL",
    )

    # =====================================================================
    # Database
    # =====================================================================
    database_url: str = Field(
        default="sqlite+aiosqlite:///./turngate_ai.db",
        description="Async SQLAlchemy URL; Postgres URLs are rewritten to asyncpg",
        alias="DATABASE_URL",
    )

    # =====================================================================
    # Provider
    # =====================================================================
    llm_api_key: Optional[str] = Field(default=None, alias="LLM_API_KEY")
    llm_model: str = Field(default="gpt-4o-mini", alias="LLM_MODEL")
    llm_base_url: str = Field(default="https://api.openai.com/v1", alias="LLM_BASE_URL")
    llm_request_timeout: float = Field(default=120.0, alias="LLM_REQUEST_TIMEOUT")

    # =====================================================================
    # Engine
    # =====================================================================
    max_iterations: int = Field(default=20, alias="TURNGATE_AI_MAX_ITERATIONS")
    stream_throttle_ms: int = Field(default=50, alias="TURNGATE_AI_STREAM_THROTTLE_MS")
    iteration_timeout_seconds: Optional[float] = Field(default=120.0, alias="TURNGATE_AI_ITERATION_TIMEOUT")
    temperature: float = Field(default=0.7, alias="TURNGATE_AI_TEMPERATURE")
    max_tokens: int = Field(default=4096, alias="TURNGATE_AI_MAX_TOKENS")
    system_prompt: str = Field(
        default="You are a helpful assistant. Use the available tools when they help the user.",
        alias="TURNGATE_AI_SYSTEM_PROMPT",
    )

    # =====================================================================
    # Tools and credits
    # =====================================================================
    tool_modules: List[str] = Field(
        default=["turngate_ai.agent_core.tools.builtin"],
        description="Dotted paths of modules defining register_tools(registry)",
        alias="TURNGATE_AI_TOOL_MODULES",
    )
    tool_prices: Dict[str, float] = Field(
        default_factory=dict,
        description="Credits charged per call, keyed by tool name",
        alias="TURNGATE_AI_TOOL_PRICES",
    )
    default_credit_balance: float = Field(default=0.0, alias="TURNGATE_AI_DEFAULT_CREDIT_BALANCE")

    # =====================================================================
    # CORS
    # =====================================================================
    cors_allow_origins: List[str] = Field(default=["*"], alias="CORS_ALLOW_ORIGINS")

    # =====================================================================
    # Computed Properties (Grouped Configurations)
    # =====================================================================

    @property
    def provider(self) -> ProviderConfig:
        """Get provider configuration from environment variables."""
        return ProviderConfig.model_validate(self.model_dump(by_alias=True))

    @property
    def engine(self) -> EngineSettings:
        """Get engine configuration from environment variables."""
        return EngineSettings.model_validate(self.model_dump(by_alias=True))

    @property
    def cors(self) -> CORSConfig:
        """Get CORS configuration from environment variables."""
        return CORSConfig.model_validate(self.model_dump(by_alias=True))


settings = Settings()
