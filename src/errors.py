"""Exception types raised by the diagram localizer."""


class DiagramLocalizerError(Exception):
    """Base class for all errors raised by this package."""


class SetupError(DiagramLocalizerError):
    """A prerequisite directory, file or tool is missing. Aborts the run."""


class SourceNotFoundError(DiagramLocalizerError):
    """A requested source diagram does not exist. The file is skipped."""


class RenderError(DiagramLocalizerError):
    """The external renderer failed for a single file."""

    def __init__(self, message: str, detail: str = ""):
        super().__init__(message)
        self.detail = detail


class ReportWriteError(DiagramLocalizerError):
    """A report file could not be written or renamed into place."""

    def __init__(self, message: str, temp_path: str = None):
        super().__init__(message)
        self.temp_path = temp_path


class ReportParseError(DiagramLocalizerError):
    """An existing report file is unreadable and cannot be safely reset."""


class DuplicateKeyError(DiagramLocalizerError):
    """A key is defined in more than one dictionary file of a language."""

    def __init__(self, language: str, key: str, files):
        self.language = language
        self.key = key
        self.files = list(files)
        super().__init__(
            f"Key '{key}' is defined in several '{language}' dictionary files: {', '.join(self.files)}"
        )
