"""Base classes for template parsers."""

from abc import ABC, abstractmethod

from stack_audit.models import Template


class ParseError(ValueError):
    """Raised when template text cannot be decoded into a template."""


class TemplateParser(ABC):
    """Abstract base class for template parsers."""

    @abstractmethod
    def parse(self, content: str, source: str = "<string>") -> Template:
        """Parse template content.

        Args:
            content: Raw template text.
            source: Where the content came from (for error messages).

        Returns:
            The parsed Template.

        Raises:
            ParseError: If the content cannot be decoded.
        """
        pass

    @classmethod
    @abstractmethod
    def supported_extensions(cls) -> list[str]:
        """Return list of supported file extensions."""
        pass
