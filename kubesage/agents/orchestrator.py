"""
Evaluator-optimizer loop.

Each request runs a bounded generate -> evaluate -> refine cycle:

    iteration 1: draft from the raw request, then judge it
    iteration i: draft from (request, previous draft, feedback), then judge it
    last iteration: draft is accepted without evaluation

Whatever draft the loop ends with is normalized into the HTML container
contract before it is returned.
"""

import asyncio
from typing import Optional

import structlog

from kubesage.agents.evaluator import Evaluator
from kubesage.agents.generator import Generator
from kubesage.agents.model import MAX_ITERATIONS, IterationRecord, LoopResult, extract_feedback
from kubesage.enums import LoopState
from kubesage.formatter import normalize_html, render_error
from kubesage.llm.prompts import GENERATOR_RETRY, PromptTemplateLoader

logger = structlog.get_logger(__name__)


class EvaluatorOptimizer:
    """Drives the generator and the evaluator for one request at a time.

    Instances hold no per-request state, so a single orchestrator can serve
    concurrent requests.
    """

    def __init__(
        self,
        generator: Generator,
        evaluator: Evaluator,
        prompts: Optional[PromptTemplateLoader] = None,
        max_iterations: int = MAX_ITERATIONS,
        request_timeout: Optional[float] = None,
    ):
        if max_iterations < 1:
            raise ValueError(f"max_iterations must be >= 1, got {max_iterations}")
        self.generator = generator
        self.evaluator = evaluator
        self.prompts = prompts or PromptTemplateLoader()
        self.max_iterations = max_iterations
        self.request_timeout = request_timeout

    def build_prompt(self, request: str, trace: str, previous_draft: Optional[str]) -> str:
        if previous_draft is None:
            return request
        return self.prompts.render(
            GENERATOR_RETRY,
            request=request,
            previous_response=previous_draft,
            feedback=extract_feedback(trace),
        )

    async def run(self, request: str) -> LoopResult:
        """Run the loop and return the normalized response with its history.

        Raises whatever the generator raises once its retries are exhausted.
        """
        state = LoopState.GENERATING
        iterations = []
        trace = ""
        draft = None

        for index in range(1, self.max_iterations + 1):
            logger.info(f"Iteration {index}/{self.max_iterations}", state=state.value)
            prompt = self.build_prompt(request, trace, draft)
            draft = await self.generator.generate(prompt)
            record = IterationRecord(index=index, draft=draft)
            iterations.append(record)

            if index == self.max_iterations:
                trace += record.to_trace(final=True)
                state = LoopState.EXHAUSTED
                logger.info("Iteration budget exhausted, accepting last draft", iterations=index)
                break

            state = LoopState.EVALUATING
            record.verdict = await self.evaluator.evaluate(request, draft)
            trace += record.to_trace()

            if record.verdict.passed:
                state = LoopState.ACCEPTED
                logger.info("Draft accepted", iterations=index, synthetic=record.verdict.synthetic)
                break

            state = LoopState.GENERATING
            logger.info("Draft needs improvement", iteration=index)

        return LoopResult(response=normalize_html(draft), state=state, iterations=iterations)

    async def invoke(self, request: str) -> str:
        """Answer ``request``; failures come back as an HTML error container."""
        try:
            if self.request_timeout:
                result = await asyncio.wait_for(self.run(request), timeout=self.request_timeout)
            else:
                result = await self.run(request)
            return result.response
        except Exception as e:
            message = str(e) or type(e).__name__
            logger.error("Request failed", error=message, exc_info=True)
            return render_error(message)
