"""Evaluator-optimizer loop: generator, evaluator and orchestrator."""

from kubesage.agents.evaluator import Evaluator
from kubesage.agents.generator import Generator
from kubesage.agents.orchestrator import EvaluatorOptimizer

__all__ = ["Evaluator", "Generator", "EvaluatorOptimizer"]
