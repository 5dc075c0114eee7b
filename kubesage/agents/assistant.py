"""Builds a ready-to-use orchestrator from configuration."""

from typing import Optional

import structlog

from kubesage.agents.evaluator import Evaluator
from kubesage.agents.generator import Generator
from kubesage.agents.orchestrator import EvaluatorOptimizer
from kubesage.config import Config
from kubesage.llm.chat import AgentChat, ChatCapability
from kubesage.llm.client import LLMClient
from kubesage.llm.prompts import EVALUATOR_SYSTEM, GENERATOR_SYSTEM, PromptTemplateLoader
from kubesage.plugins.helm import HelmPlugin
from kubesage.plugins.kubernetes import KubernetesPlugin
from kubesage.plugins.registry import ToolRegistry
from kubesage.utils.retry import BackoffPolicy

logger = structlog.get_logger(__name__)


def build_registry(config: Config) -> ToolRegistry:
    registry = ToolRegistry()
    registry.register(KubernetesPlugin(config))
    registry.register(HelmPlugin(config))
    return registry


def build_orchestrator(
    config: Config,
    registry: Optional[ToolRegistry] = None,
    generator_chat: Optional[ChatCapability] = None,
    evaluator_chat: Optional[ChatCapability] = None,
) -> EvaluatorOptimizer:
    """Wire configuration, chat clients, tools and prompts into an orchestrator.

    Chat capabilities default to agent_framework agents on the configured
    LLM clients; pass them explicitly to run against another backend.

    Raises:
        LLMConfigurationError: If no chat capability is given and no LLM is configured
    """
    registry = registry or build_registry(config)
    prompts = PromptTemplateLoader(config.llm_prompt_templates_dir)
    backoff = BackoffPolicy.from_config(config)

    if generator_chat is None:
        generator_chat = AgentChat(LLMClient(config, "generator").get_client(), name="generator")
    if evaluator_chat is None:
        evaluator_chat = AgentChat(LLMClient(config, "evaluator").get_client(), name="evaluator")

    kubernetes = config.get_kubernetes_config()
    generator = Generator(
        chat=generator_chat,
        system_prompt=prompts.render(
            GENERATOR_SYSTEM,
            default_namespace=kubernetes["namespace"],
            plugins=registry.plugins,
        ),
        tools=registry.get_tools(),
        attempts=config.max_iterations,
        backoff=backoff,
    )
    evaluator = Evaluator(
        chat=evaluator_chat,
        system_prompt=prompts.render(EVALUATOR_SYSTEM),
        prompts=prompts,
        attempts=config.max_retries,
        backoff=backoff,
    )
    logger.info(
        "Assistant ready",
        tools=len(registry.names()),
        kubernetes_context=kubernetes["context"],
        namespace=kubernetes["namespace"],
        max_iterations=config.max_iterations,
    )
    return EvaluatorOptimizer(
        generator=generator,
        evaluator=evaluator,
        prompts=prompts,
        max_iterations=config.max_iterations,
        request_timeout=config.request_timeout_seconds,
    )
