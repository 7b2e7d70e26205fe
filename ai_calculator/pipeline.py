"""Pipeline orchestrator: local strict path, stripped path, then remote normalizer."""

import logging

from .classifier import is_bare_value, is_likely_math
from .config import Config
from .errors import CalculatorError, NormalizationFailed, ParseFailure
from .evaluator import StrictEvaluator
from .models import AngleMode, NormalizationRequest, PipelineOutcome, PipelineStage, RawInput
from .normalizer import RemoteNormalizer
from .stripper import EnglishStripper

logger = logging.getLogger(__name__)


class CalculationPipeline:
    """Turn raw user text into a result, trying the cheapest path first.

    Paths, in order, stopping at the first success:

    1. ``LOCAL``: input passes the classifier gate and evaluates.
    2. ``STRIPPED``: filler words removed, result differs from the input,
       passes the gate and evaluates.
    3. ``REMOTE``: the remote normalizer rewrites the input; the rewrite must
       contain an operator or function and is evaluated like any other input.

    A failure at one path falls through to the next. When every path fails
    the last error is raised.

    Args:
        evaluator: The strict evaluator shared by every path.
        normalizer: Remote normalizer, or None for local-only operation.
        stripper: English filler stripper.
        max_input_length: Longest input accepted, in characters.
    """

    def __init__(
        self,
        evaluator: StrictEvaluator | None = None,
        normalizer: RemoteNormalizer | None = None,
        stripper: EnglishStripper | None = None,
        max_input_length: int | None = None,
    ) -> None:
        self.evaluator = evaluator or StrictEvaluator()
        self.normalizer = normalizer
        self.stripper = stripper or EnglishStripper()
        self.max_input_length = max_input_length

    @property
    def remote_enabled(self) -> bool:
        return self.normalizer is not None

    async def run(
        self,
        text: str,
        angle_mode: AngleMode | str | None = AngleMode.RAD,
        local_only: bool = False,
    ) -> PipelineOutcome:
        """Evaluate user input.

        Args:
            text: Raw user input, an expression or a natural-language phrase.
            angle_mode: ``RAD`` or ``DEG``.
            local_only: Never call the remote normalizer. Also implied when no
                normalizer is configured.

        Returns:
            The result and the path that produced it.

        Raises:
            CalculatorError: The error of the last path attempted.
        """
        raw = RawInput.create(text, angle_mode)
        if self.max_input_length is not None and len(raw.text) > self.max_input_length:
            raise ParseFailure(f"Expression is too long (max {self.max_input_length} characters)")
        if local_only or self.normalizer is None:
            return self.run_local(raw)

        if is_likely_math(raw.text):
            try:
                return self._evaluate(raw, raw.text, PipelineStage.LOCAL)
            except CalculatorError as e:
                logger.debug("Local evaluation failed, falling through: %s", e)
        else:
            logger.debug("Input does not pass the math gate: %r", raw.text)

        stripped = self._stripped_candidate(raw)
        if stripped is not None:
            try:
                return self._evaluate(raw, stripped, PipelineStage.STRIPPED, normalized=stripped)
            except CalculatorError as e:
                logger.debug("Stripped evaluation failed, falling through: %s", e)

        request = NormalizationRequest(text=raw.text, angle_mode=raw.angle_mode)
        response = await self.normalizer.normalize(request)

        expression = response.expression
        if is_bare_value(expression):
            raise NormalizationFailed(
                "The normalization service returned a value instead of an expression",
                normalized=expression,
            )

        return self._evaluate(raw, expression, PipelineStage.REMOTE, normalized=expression)

    def run_local(self, raw: RawInput) -> PipelineOutcome:
        """Evaluate without the remote normalizer.

        The input is evaluated directly, without the classifier gate, so plain
        numbers such as ``5`` are accepted. On failure the stripped path is
        tried; its failure, or the direct one, is final.
        """
        try:
            return self._evaluate(raw, raw.text, PipelineStage.LOCAL)
        except CalculatorError:
            stripped = self._stripped_candidate(raw)
            if stripped is None:
                raise
        return self._evaluate(raw, stripped, PipelineStage.STRIPPED, normalized=stripped)

    def _stripped_candidate(self, raw: RawInput) -> str | None:
        """Stripped text, if stripping changed it and it now looks like math."""
        stripped = self.stripper.strip(raw.text)
        if stripped and stripped != raw.text and is_likely_math(stripped):
            return stripped
        return None

    def _evaluate(
        self,
        raw: RawInput,
        expression: str,
        stage: PipelineStage,
        normalized: str | None = None,
    ) -> PipelineOutcome:
        try:
            result = self.evaluator.evaluate(expression, raw.angle_mode)
        except CalculatorError as e:
            if normalized is not None:
                e.normalized = normalized
            raise
        logger.info("Evaluated %r via %s path -> %s", raw.text, stage.value, result)
        return PipelineOutcome(input=raw, result=result, stage=stage, normalized=normalized)


def build_pipeline(config: Config) -> CalculationPipeline:
    """Create a pipeline from configuration; no ``llm`` section means local-only."""
    normalizer = None
    if config.llm is not None:
        normalizer = RemoteNormalizer(config.llm)
    else:
        logger.info("No LLM configured, remote normalization disabled")

    return CalculationPipeline(
        evaluator=StrictEvaluator(round_digits=config.calculator.round_digits),
        normalizer=normalizer,
        max_input_length=config.calculator.max_input_length,
    )
