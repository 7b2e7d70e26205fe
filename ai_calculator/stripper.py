"""Best-effort removal of English filler around a math expression."""

import re

DEFAULT_FILLER_PHRASES = (
    "what is the value of",
    "what is",
    "what's",
    "whats",
    "calculate",
    "compute",
    "please",
    "solve",
    "evaluate",
)


class EnglishStripper:
    """Delete known lead-in phrases so simple questions can skip the remote call.

    Only whole filler phrases and trailing punctuation are removed; numbers,
    operators and function, unit or constant names are never touched.
    """

    def __init__(self, phrases: tuple[str, ...] = DEFAULT_FILLER_PHRASES):
        # Longer phrases first so "what is the value of" wins over "what is"
        alternatives = "|".join(
            r"\s+".join(re.escape(word) for word in phrase.split())
            for phrase in sorted(phrases, key=len, reverse=True)
        )
        self.filler_pattern = re.compile(rf"\b(?:{alternatives})(?![\w'])", re.IGNORECASE)
        self.edge_pattern = re.compile(r"^[\s,:;]+|[\s,:;?!=]+$")
        self.trailing_period = re.compile(r"(?<![0-9])\.+\s*$")
        # a period after "2.5" or "1e3" ends the sentence
        self.number_period = re.compile(r"((?:\.|e[+-]?)[0-9]+)\.+\s*$", re.IGNORECASE)

    def strip(self, text: str) -> str:
        """
        Remove filler phrases from text.

        Args:
            text: Raw user input.

        Returns:
            Text with filler removed and whitespace collapsed.

        Examples:
            >>> EnglishStripper().strip("What is 2 + 2?")
            '2 + 2'
        """
        if not text:
            return ""

        result = self.filler_pattern.sub(" ", text)
        result = self.edge_pattern.sub("", result)
        result = self.trailing_period.sub("", result)
        result = self.number_period.sub(r"\1", result)
        result = self.edge_pattern.sub("", result)
        return " ".join(result.split())
