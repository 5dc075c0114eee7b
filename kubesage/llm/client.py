"""
LLM client selection based on configuration.
"""
from typing import Optional

import structlog
from agent_framework.openai import OpenAIChatClient

from kubesage.config import Config
from kubesage.llm.errors import LLMConfigurationError

logger = structlog.get_logger(__name__)


class LLMClient:
    """Selects and initializes the chat client for one role (generator or evaluator)."""

    def __init__(self, config: Config, role: str = "generator"):
        self._client = None
        self.model: Optional[str] = None
        self.provider: Optional[str] = None
        self.role = role

        llm_config = config.get_llm_config(role)
        if llm_config["use_azure"]:
            from agent_framework.azure import AzureOpenAIChatClient

            self.model = llm_config["azure_deployment"] or llm_config["model"]
            kwargs = {
                "endpoint": llm_config["azure_endpoint"],
                "deployment_name": self.model,
            }
            if llm_config["azure_api_version"]:
                kwargs["api_version"] = llm_config["azure_api_version"]
            if llm_config["api_key"]:
                kwargs["api_key"] = llm_config["api_key"]
            else:
                from azure.identity import AzureCliCredential

                kwargs["credential"] = AzureCliCredential()
            self._client = AzureOpenAIChatClient(**kwargs)
            self.provider = "azure"
        elif llm_config["base_url"] or llm_config["api_key"]:
            self.model = llm_config["model"]
            self._client = OpenAIChatClient(
                api_key=llm_config["api_key"] or "none",
                base_url=llm_config["base_url"],
                model_id=self.model,
            )
            self.provider = "openai"

        logger.debug(f"LLMClient::{role}:: provider={self.provider} model={self.model}")

    def get_client(self):
        """Returns the initialized chat client.

        Raises:
            LLMConfigurationError: If no valid LLM configuration is found.
        """
        if self._client is None:
            raise LLMConfigurationError(
                "No valid LLM configuration found. Set KUBESAGE_LLM_API_KEY / KUBESAGE_LLM_BASE_URL "
                "or enable Azure OpenAI with KUBESAGE_LLM_USE_AZURE=true."
            )
        return self._client

    def get_provider(self) -> Optional[str]:
        """Returns the LLM provider name ("openai", "azure") or None."""
        return self.provider

    def get_model(self) -> Optional[str]:
        """Returns the LLM model name."""
        return self.model
