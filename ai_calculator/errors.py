"""Error taxonomy for the calculation pipeline."""


class CalculatorError(Exception):
    """Base class for every failure the pipeline reports to the user.

    Args:
        message: Human-readable description of the failure.
        normalized: Expression text the system derived from the input, if any.
    """

    def __init__(self, message: str, normalized: str | None = None) -> None:
        super().__init__(message)
        self.message = message
        self.normalized = normalized

    @property
    def code(self) -> str:
        """Stable identifier for the error kind."""
        return type(self).__name__

    def __str__(self) -> str:
        return self.message


class DisallowedToken(CalculatorError):
    """Input contains a character or word outside the grammar."""


class ParseFailure(CalculatorError):
    """Input uses only allowed tokens but is not a well-formed expression."""


class IncompleteFunctionCall(CalculatorError):
    """A function name was used without an argument list."""


class NonFiniteResult(CalculatorError):
    """Evaluation produced NaN or infinity."""


class UnsupportedResultType(CalculatorError):
    """Evaluation left the real numbers (complex or undefined result)."""


class NormalizationFailed(CalculatorError):
    """The remote normalizer did not yield a usable expression."""


class ConfigurationError(ValueError):
    """Required configuration is missing or invalid."""
