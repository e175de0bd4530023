"""
Exceptions raised while parsing source files.

Ingestion catches `ParseError` per file, logs it and moves on to the next
file. `PathEscapeError` is a `ParseError` so the same handler covers it.
"""

from agent_memory.utils.errors import with_details


class ParseError(Exception):
    """Raised when a source file cannot be parsed or its syntax tree walked.

    Attributes:
        message: Explanation of the error
        language: Language of the file, when known
        file_path: Path of the file, when known
    """

    def __init__(
        self,
        message: str,
        language: str | None = None,
        file_path: str | None = None,
    ):
        self.message = message
        self.language = language
        self.file_path = file_path
        super().__init__(with_details(message, language=language, file=file_path))


class PathEscapeError(ParseError):
    """Raised when a relative import resolves outside the project root.

    Attributes:
        specifier: The import specifier as written in the source
        project_root: The root the resolved path had to stay within
    """

    def __init__(
        self,
        specifier: str,
        file_path: str | None = None,
        project_root: str | None = None,
        language: str | None = None,
    ):
        self.specifier = specifier
        self.project_root = project_root
        super().__init__(
            f"Import path escapes project root: {specifier}",
            language=language,
            file_path=file_path,
        )


class UnsupportedLanguageError(Exception):
    """Raised when no parser is registered for a language, or a file has no known language.

    Attributes:
        language: The language identifier (or file suffix) that was requested
        supported_languages: Languages that do have a parser
    """

    def __init__(self, language: str, supported_languages: list[str] | None = None):
        self.language = language
        self.supported_languages = list(supported_languages or [])
        message = f"Unsupported language for parsing: '{language}'"
        if self.supported_languages:
            message = f"{message} (supported: {', '.join(self.supported_languages)})"
        super().__init__(message)
