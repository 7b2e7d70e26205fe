"""Tests for CalculationPipeline."""

import pytest

from ai_calculator.config import Config, LLMConfig
from ai_calculator.errors import (
    DisallowedToken,
    IncompleteFunctionCall,
    NonFiniteResult,
    NormalizationFailed,
    ParseFailure,
)
from ai_calculator.history import CalculationHistory
from ai_calculator.models import AngleMode, NormalizationResponse, PipelineStage
from ai_calculator.pipeline import CalculationPipeline, build_pipeline


class StubNormalizer:
    """Remote normalizer double returning a fixed expression."""

    def __init__(self, expression=None, error=None):
        self.expression = expression
        self.error = error
        self.requests = []

    async def normalize(self, request):
        self.requests.append(request)
        if self.error is not None:
            raise self.error
        return NormalizationResponse(expression=self.expression)


class TestPipelineLocalPaths:
    """Test paths that never reach the remote normalizer."""

    def setup_method(self):
        """Set up test fixtures."""
        self.normalizer = StubNormalizer(expression="1 + 1")
        self.pipeline = CalculationPipeline(normalizer=self.normalizer)

    @pytest.mark.asyncio
    async def test_strict_input_evaluated_locally(self):
        """Test that strict math short-circuits on the local path."""
        outcome = await self.pipeline.run("2 + 2")
        assert outcome.stage is PipelineStage.LOCAL
        assert outcome.result.value == 4
        assert outcome.normalized is None
        assert self.normalizer.requests == []

    @pytest.mark.asyncio
    async def test_filler_stripped_locally(self):
        """Test that simple phrasing is handled without the remote call."""
        outcome = await self.pipeline.run("What is 2 + 2?")
        assert outcome.stage is PipelineStage.STRIPPED
        assert outcome.result.value == 4
        assert outcome.normalized == "2 + 2"
        assert self.normalizer.requests == []

    @pytest.mark.asyncio
    async def test_angle_mode_applied(self):
        """Test that the angle mode reaches the evaluator."""
        outcome = await self.pipeline.run("sin(30)", "DEG")
        assert outcome.result.value == pytest.approx(0.5)
        assert outcome.input.angle_mode is AngleMode.DEG

    @pytest.mark.asyncio
    async def test_input_trimmed(self):
        """Test that the raw input is trimmed."""
        outcome = await self.pipeline.run("  3 * 3  ")
        assert outcome.input.text == "3 * 3"
        assert outcome.output == "9"

    @pytest.mark.asyncio
    @pytest.mark.parametrize("text", ["", "   ", None])
    async def test_empty_input(self, text):
        """Test that empty input is rejected."""
        with pytest.raises(ParseFailure):
            await self.pipeline.run(text)

    @pytest.mark.asyncio
    async def test_input_too_long(self):
        """Test the input length limit."""
        pipeline = CalculationPipeline(max_input_length=5)
        with pytest.raises(ParseFailure, match="too long"):
            await pipeline.run("1 + 2 + 3")


class TestPipelineRemotePath:
    """Test the remote normalizer path."""

    @pytest.mark.asyncio
    async def test_natural_language_normalized(self):
        """Test that the remote rewrite is evaluated locally."""
        normalizer = StubNormalizer(expression="5 + 3")
        pipeline = CalculationPipeline(normalizer=normalizer)

        outcome = await pipeline.run("five plus three", AngleMode.DEG)

        assert outcome.stage is PipelineStage.REMOTE
        assert outcome.result.value == 8
        assert outcome.normalized == "5 + 3"
        assert len(normalizer.requests) == 1
        assert normalizer.requests[0].text == "five plus three"
        assert normalizer.requests[0].angle_mode is AngleMode.DEG

    @pytest.mark.asyncio
    async def test_normalized_output_uses_angle_mode(self):
        """Test that the rewrite is canonicalized with the request's angle mode."""
        pipeline = CalculationPipeline(normalizer=StubNormalizer(expression="sin(30)"))
        outcome = await pipeline.run("sine of thirty degrees", "DEG")
        assert outcome.result.value == pytest.approx(0.5)

    @pytest.mark.asyncio
    async def test_bare_number_rejected(self):
        """Test that a normalizer answer without an operator is not trusted."""
        pipeline = CalculationPipeline(normalizer=StubNormalizer(expression="5"))
        with pytest.raises(NormalizationFailed) as excinfo:
            await pipeline.run("five")
        assert excinfo.value.normalized == "5"

    @pytest.mark.asyncio
    @pytest.mark.parametrize("expression", ["-3", "5e-3", "1.2e+20", "-pi", "30 deg", "2, -1"])
    async def test_computed_value_rejected(self, expression):
        """Test that signed, scientific and unit-tagged values are treated as answers."""
        normalizer = StubNormalizer(expression=expression)
        pipeline = CalculationPipeline(normalizer=normalizer)
        with pytest.raises(NormalizationFailed) as excinfo:
            await pipeline.run("two minus five")
        assert excinfo.value.normalized == expression

    @pytest.mark.asyncio
    async def test_negated_expression_accepted(self):
        """Test that a leading sign on a real operation is still an expression."""
        pipeline = CalculationPipeline(normalizer=StubNormalizer(expression="-(2 + 3)"))
        outcome = await pipeline.run("minus the sum of two and three")
        assert outcome.result.value == -5

    @pytest.mark.asyncio
    async def test_bare_function_name_rejected(self):
        """Test that a normalizer answer naming a function without a call is rejected."""
        pipeline = CalculationPipeline(normalizer=StubNormalizer(expression="log10"))
        with pytest.raises(NormalizationFailed):
            await pipeline.run("the log function")

    @pytest.mark.asyncio
    async def test_normalized_output_still_strict(self):
        """Test that the rewrite goes through the grammar gate."""
        pipeline = CalculationPipeline(normalizer=StubNormalizer(expression="2 + foo"))
        with pytest.raises(DisallowedToken) as excinfo:
            await pipeline.run("two plus foo")
        assert excinfo.value.normalized == "2 + foo"

    @pytest.mark.asyncio
    async def test_normalized_output_evaluator_error(self):
        """Test that evaluator errors on the rewrite carry the rewrite."""
        pipeline = CalculationPipeline(normalizer=StubNormalizer(expression="1 / 0"))
        with pytest.raises(NonFiniteResult) as excinfo:
            await pipeline.run("one divided by zero")
        assert excinfo.value.normalized == "1 / 0"

    @pytest.mark.asyncio
    async def test_local_failure_falls_through(self):
        """Test that a local evaluation failure is not terminal."""
        normalizer = StubNormalizer(expression="2 + 3")
        pipeline = CalculationPipeline(normalizer=normalizer)

        outcome = await pipeline.run("2 + (3")

        assert outcome.stage is PipelineStage.REMOTE
        assert outcome.result.value == 5
        assert len(normalizer.requests) == 1

    @pytest.mark.asyncio
    async def test_normalization_failure_is_final(self):
        """Test that the last stage's error reaches the caller."""
        pipeline = CalculationPipeline(
            normalizer=StubNormalizer(error=NormalizationFailed("service down"))
        )
        with pytest.raises(NormalizationFailed, match="service down"):
            await pipeline.run("2 + (3")


class TestPipelineLocalOnly:
    """Test local-only operation."""

    @pytest.mark.asyncio
    async def test_local_only_skips_remote(self):
        """Test that local-only never calls the normalizer."""
        normalizer = StubNormalizer(expression="5 + 3")
        pipeline = CalculationPipeline(normalizer=normalizer)

        with pytest.raises(DisallowedToken):
            await pipeline.run("five plus three", local_only=True)
        assert normalizer.requests == []

    @pytest.mark.asyncio
    async def test_local_only_accepts_plain_number(self):
        """Test that the direct path does not require an operator."""
        outcome = await CalculationPipeline().run("5", local_only=True)
        assert outcome.stage is PipelineStage.LOCAL
        assert outcome.result.value == 5

    @pytest.mark.asyncio
    async def test_local_only_stripped(self):
        """Test that local-only still strips filler."""
        outcome = await CalculationPipeline().run("please compute sqrt(16)", local_only=True)
        assert outcome.stage is PipelineStage.STRIPPED
        assert outcome.result.value == 4

    @pytest.mark.asyncio
    async def test_local_only_reports_evaluator_error(self):
        """Test that a bare function name fails with IncompleteFunctionCall."""
        with pytest.raises(IncompleteFunctionCall):
            await CalculationPipeline().run("log10")

    @pytest.mark.asyncio
    async def test_no_normalizer_means_local_only(self):
        """Test a pipeline built without a normalizer."""
        pipeline = CalculationPipeline()
        assert pipeline.remote_enabled is False
        with pytest.raises(DisallowedToken):
            await pipeline.run("five plus three")


class TestPipelineHistory:
    """Test recording pipeline results in the session history."""

    @pytest.mark.asyncio
    async def test_history_bounded_newest_first(self):
        """Test that 25 successes leave the 20 newest, newest first."""
        pipeline = CalculationPipeline()
        history = CalculationHistory(max_entries=20)

        for i in range(25):
            text = f"{i} + 1"
            outcome = await pipeline.run(text)
            history.record(text, outcome.output)

        entries = history.entries()
        assert len(entries) == 20
        assert entries[0].input == "24 + 1"
        assert entries[0].output == "25"
        assert entries[-1].input == "5 + 1"


class TestBuildPipeline:
    """Test building a pipeline from configuration."""

    def test_without_llm(self):
        """Test that no llm section gives a local-only pipeline."""
        pipeline = build_pipeline(Config())
        assert pipeline.remote_enabled is False
        assert pipeline.evaluator.round_digits == 14
        assert pipeline.max_input_length == 300

    def test_with_llm(self):
        """Test that an llm section enables the remote normalizer."""
        config = Config(llm=LLMConfig(provider="openai", api_key="sk-test"))
        assert build_pipeline(config).remote_enabled is True
