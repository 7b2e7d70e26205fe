"""Remote normalizer: natural-language math to calculator expression via an LLM."""

import json
import logging
import re

from langchain_core.language_models import BaseChatModel
from langchain_core.messages import HumanMessage, SystemMessage
from pydantic import ValidationError

from .config import LLMConfig
from .errors import ConfigurationError, NormalizationFailed
from .models import AngleMode, NormalizationRequest, NormalizationResponse

logger = logging.getLogger(__name__)


# The model rewrites, it never calculates. Its output is evaluated locally.
SYSTEM_PROMPT = """You translate math questions into calculator expressions.

Return ONLY a JSON object of the form:
{"expression": "<expression>"}

## Allowed vocabulary
- Numbers with an optional decimal point
- Constants: pi, e
- Functions: sin, cos, tan, log (one argument = base 10), log(x, base), log10, ln (natural), exp, sqrt
- Operators: + - * / ^ and parentheses; comma only between log arguments
- Unit words: deg, rad, written after a number, e.g. 30 deg

## Rules
- NEVER compute, evaluate or simplify. Translate the words only.
  "five plus three" -> {"expression": "5 + 3"}, not {"expression": "8"}
- Spell number words as digits ("twelve" -> 12).
- Keep every operation the user asked for, in the order they asked.
- Only add deg or rad when the user explicitly names the unit.
- Use nothing outside the allowed vocabulary: no variables, no other functions,
  no "=", no words.
- If the text is not a calculation, return {"expression": ""}.
- No prose, no code fences, no explanations. JSON only."""

_CODE_FENCE_RE = re.compile(r"^```(?:json)?\s*|\s*```$")
_JSON_OBJECT_RE = re.compile(r"\{.*\}", re.DOTALL)
_QUOTED_RE = re.compile(r"`([^`]+)`|\"([^\"]+)\"|'([^']+)'")


class RemoteNormalizer:
    """Converts free text into an expression using a chat model.

    Args:
        config: LLM settings. Required unless ``llm`` is given.
        llm: Pre-built chat model, used instead of creating one from config.

    Raises:
        ConfigurationError: If neither a usable config nor a model is given.
    """

    def __init__(self, config: LLMConfig | None, llm: BaseChatModel | None = None) -> None:
        if llm is None:
            if config is None:
                raise ConfigurationError("LLM configuration is required for remote normalization")
            if not config.api_key.get_secret_value().strip():
                raise ConfigurationError("llm.api_key must not be empty")
        self.config = config
        self.llm = llm if llm is not None else self._create_llm()

    def _create_llm(self) -> BaseChatModel:
        """Create the appropriate LLM based on config."""
        if self.config.provider == "anthropic":
            from langchain_anthropic import ChatAnthropic

            return ChatAnthropic(
                model=self.config.model,
                api_key=self.config.api_key.get_secret_value(),
                max_tokens=self.config.max_tokens,
                temperature=self.config.temperature,
                timeout=self.config.timeout,
                max_retries=self.config.max_retries,
            )
        elif self.config.provider == "openai":
            from langchain_openai import ChatOpenAI

            return ChatOpenAI(
                model=self.config.model,
                api_key=self.config.api_key.get_secret_value(),
                max_tokens=self.config.max_tokens,
                temperature=self.config.temperature,
                timeout=self.config.timeout,
                max_retries=self.config.max_retries,
            )
        else:
            raise ConfigurationError(f"Unsupported LLM provider: {self.config.provider}")

    def _sanitize_text(self, text: str) -> str:
        """Drop control and zero-width characters from user text."""
        text = re.sub(r"[\x00-\x08\x0b\x0c\x0e-\x1f\x7f]", "", text)
        for char in ("\u200b", "\u200c", "\u200d", "\ufeff"):
            text = text.replace(char, "")
        return text.strip()

    def _build_messages(self, request: NormalizationRequest) -> list:
        if request.angle_mode is AngleMode.DEG:
            angle_note = "The calculator is in DEG mode; bare trig arguments are read as degrees."
        else:
            angle_note = "The calculator is in RAD mode; bare trig arguments are read as radians."

        user_message = f"""{angle_note}

<TEXT>
{self._sanitize_text(request.text)}
</TEXT>

Translate the text above into a calculator expression. Do not evaluate it."""

        return [SystemMessage(content=SYSTEM_PROMPT), HumanMessage(content=user_message)]

    async def normalize(self, request: NormalizationRequest) -> NormalizationResponse:
        """Ask the model for an expression equivalent to the request text.

        A single request is made; retries are left to the model client config.

        Args:
            request: Text and angle mode to normalize.

        Returns:
            The expression the model produced. It has not been evaluated.

        Raises:
            NormalizationFailed: If the call fails or the reply is unusable.
        """
        logger.info("Requesting remote normalization (%s)", request.angle_mode.value)
        logger.debug("Normalization text: %s", request.text)

        try:
            response = await self.llm.ainvoke(self._build_messages(request))
        except Exception as e:
            logger.warning("Remote normalizer call failed: %s", e)
            raise NormalizationFailed(f"Could not reach the normalization service: {e}") from e

        reply = _message_text(response.content)
        logger.debug("Normalizer reply: %s", reply)
        return self._parse_response(reply)

    def _parse_response(self, response_text: str) -> NormalizationResponse:
        """
        Extract the expression from the model reply.

        Structured JSON is preferred; a back-ticked or quoted fragment in free
        text is accepted as a fallback.

        Raises:
            NormalizationFailed: If no non-empty expression can be found.
        """
        cleaned = _CODE_FENCE_RE.sub("", response_text.strip()).strip()

        match = _JSON_OBJECT_RE.search(cleaned)
        if match:
            try:
                payload = json.loads(match.group(0))
            except json.JSONDecodeError as e:
                logger.debug("Normalizer reply is not valid JSON: %s", e)
            else:
                if isinstance(payload, dict) and "expression" in payload:
                    try:
                        parsed = NormalizationResponse.model_validate(payload)
                    except ValidationError:
                        raise NormalizationFailed("The normalization service returned no expression")
                    return _stripped(parsed)
                raise NormalizationFailed("The normalization service replied in an unexpected shape")

        quoted = _QUOTED_RE.search(cleaned)
        if quoted:
            fragment = next(group for group in quoted.groups() if group is not None)
            logger.debug("Using quoted fragment from free-text reply: %s", fragment)
            return _stripped(NormalizationResponse(expression=fragment))

        raise NormalizationFailed("The normalization service did not return an expression")


def _stripped(response: NormalizationResponse) -> NormalizationResponse:
    expression = response.expression.strip()
    if not expression:
        raise NormalizationFailed("The normalization service returned an empty expression")
    return NormalizationResponse(expression=expression)


def _message_text(content: str | list) -> str:
    """Flatten chat message content, which may be a list of content blocks."""
    if isinstance(content, str):
        return content
    parts = []
    for block in content:
        if isinstance(block, str):
            parts.append(block)
        elif isinstance(block, dict) and block.get("type") == "text":
            parts.append(block.get("text", ""))
    return "".join(parts)
