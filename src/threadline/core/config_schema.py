"""Configuration schema: Pydantic models for threadline config files."""

from __future__ import annotations

from typing import List, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field

from ..util.error import AUTH_ERROR_PATTERNS


class LoggingConfig(BaseModel):
    """Logging configuration."""
    level: Optional[str] = None
    format: Optional[Literal["kv", "json", "pretty"]] = None
    console: Optional[bool] = None
    file: Optional[bool] = None

    model_config = ConfigDict(extra="forbid", populate_by_name=True)


class AgentConfig(BaseModel):
    """Agent loop configuration."""
    max_steps: int = Field(10, alias="maxSteps", ge=1)
    system_prompt: Optional[str] = Field(None, alias="systemPrompt")
    history_limit: int = Field(100, alias="historyLimit", ge=1)

    model_config = ConfigDict(extra="forbid", populate_by_name=True)


class ActionConfig(BaseModel):
    """A remediation button offered alongside an error."""
    text: str
    command: str
    args: Optional[List[str]] = None


def _default_actions() -> List[ActionConfig]:
    return [
        ActionConfig(text="Configure API Key", command="threadline.configureApiKey"),
        ActionConfig(text="Open Settings", command="threadline.openSettings"),
    ]


class AuthConfig(BaseModel):
    """Credential error detection."""
    patterns: List[str] = Field(default_factory=lambda: list(AUTH_ERROR_PATTERNS))
    actions: List[ActionConfig] = Field(default_factory=_default_actions)

    model_config = ConfigDict(extra="forbid", populate_by_name=True)


class Config(BaseModel):
    """Main configuration model."""
    schema_: Optional[str] = Field(None, alias="$schema")
    logging: LoggingConfig = Field(default_factory=LoggingConfig)
    agent: AgentConfig = Field(default_factory=AgentConfig)
    auth: AuthConfig = Field(default_factory=AuthConfig)

    model_config = ConfigDict(extra="allow", populate_by_name=True)
