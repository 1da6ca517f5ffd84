"""
Application settings and configuration management.

Uses Pydantic Settings for validation and environment variable support.
"""

from pathlib import Path
from typing import Literal

from pydantic import BaseModel, Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class LLMSettings(BaseSettings):
    """LLM backend configuration.

    Values here are fallbacks: anything the caller sends in ``client_details``
    takes precedence over them.
    """

    openai_api_key: str = Field(default="", description="Fallback OpenAI API key")
    azure_api_key: str = Field(default="", description="Fallback Azure OpenAI API key")
    gemini_api_key: str = Field(default="", description="Fallback Gemini API key")

    openai_base_url: str = Field(
        default="https://api.openai.com/v1",
        description="Base URL for the OpenAI-compatible chat completions API",
    )
    gemini_base_url: str = Field(
        default="https://generativelanguage.googleapis.com/v1beta",
        description="Base URL for the Gemini generateContent API",
    )
    azure_endpoint: str = Field(
        default="",
        description="Azure OpenAI resource endpoint, e.g. https://my-resource.openai.azure.com",
    )
    azure_api_version: str = Field(default="2024-02-15-preview", description="Azure OpenAI API version")

    chat_model: str = Field(default="", description="Override for the text model (empty = adapter default)")
    vision_model: str = Field(default="", description="Override for the image model (empty = adapter default)")
    speech_model: str = Field(default="", description="Override for the audio model (empty = adapter default)")

    temperature: float = Field(default=0.1, description="Sampling temperature")
    max_tokens: int = Field(default=1000, description="Maximum tokens in each response")
    tool_choice: str = Field(default="auto", description="Tool choice mode sent with tool-enabled calls")
    request_timeout: float = Field(default=60.0, gt=0, description="Per-call transport timeout in seconds")

    model_config = SettingsConfigDict(env_prefix="LLM_")


class EngineSettings(BaseSettings):
    """Conversation loop configuration."""

    max_tool_rounds: int = Field(
        default=10,
        ge=1,
        description="Tool rounds allowed per request before it ends with a max-rounds error",
    )
    assistant_name: str = Field(
        default="MCP",
        description="Label used in the classifier prompt when no server is selected",
    )

    model_config = SettingsConfigDict(env_prefix="ENGINE_")


class MCPServerConfig(BaseModel):
    """How to spawn one MCP tool provider over stdio."""

    name: str = Field(description="Server selector used in requests, e.g. 'FEDORA'")
    command: str = Field(default="node", description="Executable that starts the server")
    args: list[str] = Field(default_factory=list, description="Arguments, e.g. ['servers/FEDORA/build/index.js']")
    env: dict[str, str] = Field(default_factory=dict, description="Extra environment for the subprocess")
    description: str = Field(default="", description="Human-readable capability summary")


class ToolSettings(BaseSettings):
    """MCP tool provider configuration."""

    servers: list[MCPServerConfig] = Field(
        default_factory=list,
        description="MCP servers to connect at startup. "
                    "Set via TOOLS__SERVERS='[{\"name\": \"FEDORA\", \"args\": [\"build/index.js\"]}]'",
    )
    connect_timeout: float = Field(default=30.0, gt=0, description="Seconds allowed for each server handshake")

    model_config = SettingsConfigDict(env_prefix="TOOLS_")


class Settings(BaseSettings):
    """Main application settings."""

    # Environment
    environment: Literal["development", "production"] = Field(
        default="development", description="Deployment environment"
    )

    # Logging
    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"] = Field(
        default="INFO", description="Logging level"
    )
    log_file: Path | None = Field(default=None, description="Log file path")

    # Sub-configurations
    llm: LLMSettings = Field(default_factory=LLMSettings)
    engine: EngineSettings = Field(default_factory=EngineSettings)
    tools: ToolSettings = Field(default_factory=ToolSettings)

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        env_nested_delimiter="__",
        case_sensitive=False,
        extra="ignore",
    )


# Global settings instance
_settings: Settings | None = None


def get_settings() -> Settings:
    """Get or create the global settings instance."""
    global _settings
    if _settings is None:
        _settings = Settings()
    return _settings


def load_settings(env_file: str | Path | None = None) -> Settings:
    """
    Load settings from file and environment.

    Args:
        env_file: Path to .env file (optional)

    Returns:
        Loaded settings instance
    """
    global _settings
    if env_file:
        _settings = Settings(_env_file=env_file)
    else:
        _settings = Settings()
    return _settings
