"""Language to extractor registry."""

from code_graph.core.exceptions import UnsupportedLanguageError
from code_graph.parsing.extractors.base import BaseExtractor
from code_graph.parsing.extractors.c import CExtractor
from code_graph.parsing.extractors.cpp import CppExtractor
from code_graph.parsing.extractors.csharp import CSharpExtractor
from code_graph.parsing.extractors.ecmascript import ECMAScriptExtractor
from code_graph.parsing.extractors.go import GoExtractor
from code_graph.parsing.extractors.python import PythonExtractor
from code_graph.parsing.models import Language
from code_graph.utils.logging import get_logger

logger = get_logger(__name__)


class ExtractorRegistry:
    """Holds one extractor instance per code language."""

    def __init__(self) -> None:
        ecmascript = ECMAScriptExtractor()
        self._extractors: dict[Language, BaseExtractor] = {
            Language.TYPESCRIPT: ecmascript,
            Language.TSX: ecmascript,
            Language.JAVASCRIPT: ecmascript,
            Language.PYTHON: PythonExtractor(),
            Language.GO: GoExtractor(),
            Language.C: CExtractor(),
            Language.CPP: CppExtractor(),
            Language.CSHARP: CSharpExtractor(),
        }

    def register(self, language: Language, extractor: BaseExtractor) -> None:
        """Register or replace the extractor for a language."""
        self._extractors[language] = extractor
        logger.debug("Registered extractor", language=language.value)

    def is_supported(self, language: Language) -> bool:
        """Whether a code extractor exists for the language."""
        return language in self._extractors

    def get(self, language: Language) -> BaseExtractor:
        """Get the extractor for a language.

        Raises:
            UnsupportedLanguageError: If no extractor is registered.
        """
        try:
            return self._extractors[language]
        except KeyError:
            raise UnsupportedLanguageError(
                language.value,
                [lang.value for lang in self._extractors],
            ) from None
