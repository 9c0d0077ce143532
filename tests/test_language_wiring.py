"""
Test suite for language wiring completeness.

When adding a new language to callctx, this test ensures all
registration points are properly wired. Run with:

    pytest tests/test_language_wiring.py -v

To test a specific language:

    pytest tests/test_language_wiring.py -v -k "go"
"""

import pytest

# All supported languages and their extensions
SUPPORTED_LANGUAGES = {
    "python": [".py", ".pyw"],
    "go": [".go"],
    "java": [".java"],
}

# Languages parsed into a tree-sitter syntax tree
STRUCTURED_LANGUAGES = {"java"}


class TestLanguageWiring:
    """Test that each language is properly wired in all modules."""

    @pytest.mark.parametrize("language", SUPPORTED_LANGUAGES.keys())
    def test_language_enum(self, language):
        """Language should be a member of the Language enum."""
        from callctx.models import Language

        assert Language(language).value == language

    @pytest.mark.parametrize("language", SUPPORTED_LANGUAGES.keys())
    def test_extension_to_language(self, language):
        """Language extensions should be in models.py EXTENSION_TO_LANGUAGE."""
        from callctx.models import EXTENSION_TO_LANGUAGE, Language

        for ext in SUPPORTED_LANGUAGES[language]:
            assert ext in EXTENSION_TO_LANGUAGE, (
                f"Extension {ext} for {language} missing from EXTENSION_TO_LANGUAGE"
            )
            assert EXTENSION_TO_LANGUAGE[ext] is Language(language), (
                f"Extension {ext} maps to {EXTENSION_TO_LANGUAGE[ext]}, expected {language}"
            )
        assert set(Language(language).extensions) == set(SUPPORTED_LANGUAGES[language])

    @pytest.mark.parametrize("language", SUPPORTED_LANGUAGES.keys())
    def test_adapter_registered(self, language):
        """Every language should have an adapter declaring that language."""
        from callctx.adapters import adapter_for, get_adapter
        from callctx.models import Language

        adapter = get_adapter(language)
        assert adapter is adapter_for(Language(language))
        assert adapter.language is Language(language)

    @pytest.mark.parametrize("language", SUPPORTED_LANGUAGES.keys())
    def test_adapter_has_builtins(self, language):
        """Builtin deny-lists should not be empty."""
        from callctx.adapters import get_adapter

        assert get_adapter(language).builtins

    @pytest.mark.parametrize("language", STRUCTURED_LANGUAGES)
    def test_grammar_available(self, language):
        """Structured languages should have a tree-sitter grammar."""
        pytest.importorskip(f"tree_sitter_{language}")
        from callctx.models import Language
        from callctx.parsing import grammar_available

        assert grammar_available(Language(language))


class TestUnsupportedLanguages:
    """Unknown languages fail loudly through get_adapter only."""

    @pytest.mark.parametrize("language", ["rust", "typescript", "", "PYTHON"])
    def test_adapter_for_returns_none(self, language):
        from callctx.adapters import adapter_for

        assert adapter_for(language) is None

    def test_get_adapter_raises(self):
        from callctx.adapters import get_adapter
        from callctx.errors import CallContextError, UnsupportedLanguageError

        with pytest.raises(UnsupportedLanguageError) as exc_info:
            get_adapter("rust")
        assert isinstance(exc_info.value, CallContextError)
        assert "rust" in str(exc_info.value)

    @pytest.mark.parametrize("filename", ["main.rs", "index.ts", "Makefile"])
    def test_source_unit_rejects_unknown_extension(self, filename):
        from callctx.errors import UnsupportedLanguageError
        from callctx.source import SourceUnit

        with pytest.raises(UnsupportedLanguageError):
            SourceUnit(filename)

    def test_language_from_path(self):
        from callctx.models import Language

        assert Language.from_path("a/b/Main.JAVA") is Language.JAVA
        assert Language.from_path("tool.pyw") is Language.PYTHON
        assert Language.from_path("README.md") is None
