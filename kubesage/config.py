"""
Configuration management for kubesage.

Implements multi-level configuration loading with precedence:
1. Environment variables (highest priority)
2. Project config (./.kubesage/config.yaml)
3. User config (~/.kubesage/config.yaml)
4. System config (/etc/kubesage/config.yaml)
"""

from pathlib import Path
from typing import Any, Dict, Literal, Optional, Tuple

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict, YamlConfigSettingsSource, PydanticBaseSettingsSource


class Config(BaseSettings):
    """Complete configuration schema for kubesage with flat structure."""

    model_config = SettingsConfigDict(
        # Load from .env files in order of precedence (lowest to highest)
        env_file=[
            ".env.defaults",
            ".env",
            str(Path.home() / ".kubesage" / ".env"),
        ],
        # Load from YAML files in order of precedence (lowest to highest)
        yaml_file=[
            "/etc/kubesage/config.yaml",
            str(Path.home() / ".kubesage" / "config.yaml"),
            str(Path.cwd() / ".kubesage" / "config.yaml"),
        ],
        env_prefix="KUBESAGE_",
        case_sensitive=False,
        # Ignore extra fields (like OPENAI_API_KEY that aren't part of config schema)
        extra="ignore",
        env_file_encoding="utf-8",
    )

    # =================================================================
    # Evaluator-optimizer loop
    # =================================================================
    max_iterations: int = Field(
        default=3, ge=1, description="Maximum generate/evaluate passes (also the generation attempt budget)"
    )
    max_retries: int = Field(
        default=3, ge=1, description="Maximum evaluation attempts before falling back to a synthetic PASS"
    )
    backoff_base_seconds: float = Field(
        default=1.0, ge=0, description="Base of the exponential backoff: delay(n) = base * 2^n"
    )
    backoff_max_seconds: Optional[float] = Field(
        default=None, gt=0, description="Optional cap for a single backoff delay (None = uncapped)"
    )
    request_timeout_seconds: Optional[float] = Field(
        default=None, gt=0, description="Optional deadline for a whole request (None = no deadline)"
    )

    # =================================================================
    # LLM Configuration (flat)
    # =================================================================
    llm_default_model: str = Field(default="gpt-4o", description="Model used for generation")
    llm_evaluator_model: Optional[str] = Field(
        default=None, description="Model used by the judge (defaults to llm_default_model)"
    )
    llm_base_url: Optional[str] = Field(default=None, description="Base URL for OpenAI-compatible API")
    llm_api_key: Optional[str] = Field(default=None, description="API key for the OpenAI-compatible API")

    llm_use_azure: bool = Field(default=False, description="Use Azure OpenAI instead of an OpenAI-compatible API")
    llm_azure_endpoint: Optional[str] = Field(default=None, description="Azure OpenAI endpoint")
    llm_azure_deployment: Optional[str] = Field(default=None, description="Azure OpenAI chat deployment name")
    llm_azure_api_version: Optional[str] = Field(default=None, description="Azure OpenAI API version")

    llm_prompt_templates_dir: Optional[str] = Field(
        default=None, description="Directory containing prompt templates overriding the built-in ones"
    )

    # =================================================================
    # Cluster tools
    # =================================================================
    kubernetes_context: Optional[str] = Field(default=None, description="Kubernetes context to use")
    kubernetes_namespace: str = Field(default="default", description="Default Kubernetes namespace")
    kubectl_path: str = Field(default="kubectl", description="kubectl executable")
    helm_path: str = Field(default="helm", description="helm executable")
    command_timeout_seconds: int = Field(default=30, ge=1, description="Timeout for kubectl/helm commands")
    tools_read_only: bool = Field(
        default=True, description="Only expose read-only tools to the model"
    )

    # =================================================================
    # HTTP API
    # =================================================================
    api_host: str = Field(default="127.0.0.1", description="Host the API server binds to")
    api_port: int = Field(default=8080, ge=1, le=65535, description="Port the API server binds to")

    # =================================================================
    # Logging
    # =================================================================
    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR"] = Field(
        default="INFO", description="Log level"
    )
    log_json: bool = Field(default=False, description="Render logs as JSON lines")

    @classmethod
    def settings_customise_sources(
        cls,
        settings_cls: type[BaseSettings],
        init_settings: PydanticBaseSettingsSource,
        env_settings: PydanticBaseSettingsSource,
        dotenv_settings: PydanticBaseSettingsSource,
        file_secret_settings: PydanticBaseSettingsSource,
    ) -> Tuple[PydanticBaseSettingsSource, ...]:
        """Customize settings sources to include YAML support."""
        yaml_settings = YamlConfigSettingsSource(settings_cls)
        return (
            init_settings,
            env_settings,
            dotenv_settings,
            yaml_settings,
            file_secret_settings,
        )

    def get_llm_config(self, role: str = "generator") -> Dict[str, Any]:
        """Get LLM configuration for the generator or the evaluator.

        The evaluator uses ``llm_evaluator_model`` when set and falls back to
        the default model otherwise.
        """
        if role not in ("generator", "evaluator"):
            raise ValueError(f"Unknown LLM role: {role}")

        model = self.llm_default_model
        if role == "evaluator" and self.llm_evaluator_model:
            model = self.llm_evaluator_model

        return {
            "model": model,
            "base_url": self.llm_base_url,
            "api_key": self.llm_api_key,
            "use_azure": self.llm_use_azure,
            "azure_endpoint": self.llm_azure_endpoint,
            "azure_deployment": self.llm_azure_deployment,
            "azure_api_version": self.llm_azure_api_version,
        }

    def get_kubernetes_config(self) -> Dict[str, Any]:
        """Get Kubernetes configuration."""
        return {
            "context": self.kubernetes_context,
            "namespace": self.kubernetes_namespace,
        }


def load_config(**overrides: Any) -> Config:
    """
    Load configuration from all sources with proper precedence.

    Precedence (highest to lowest):
    1. Keyword overrides
    2. Environment variables (KUBESAGE_*)
    3. User .env (~/.kubesage/.env), project .env, project defaults (./.env.defaults)
    4. Project config (./.kubesage/config.yaml)
    5. User config (~/.kubesage/config.yaml)
    6. System config (/etc/kubesage/config.yaml)
    7. Default values

    Examples:
        >>> config = load_config()
        >>> config.max_iterations
        3

        # export KUBESAGE_MAX_ITERATIONS=5
        >>> load_config().max_iterations
        5
    """
    return Config(**overrides)
