"""Error taxonomy for per-document build failures"""


class MdsiteError(Exception):
    """Base class for every error that fails a single document."""


class ContentFormatError(MdsiteError):
    """Source content is malformed: bad filename, front matter, or directive."""


class CompilationError(MdsiteError):
    """A page template failed to build; carries the full diagnostic list."""

    def __init__(self, name: str, diagnostics: list):
        self.name = name
        self.diagnostics = list(diagnostics)
        messages = "; ".join(d.message for d in self.diagnostics)
        super().__init__(f"Template compilation failed for {name}: {messages}")


class RenderUnitLookupError(MdsiteError, LookupError):
    """The compiled module exposes no entry point implementing the render contract."""


class RenderError(MdsiteError):
    """Rendering a unit or layout failed or timed out."""


class FileSystemError(MdsiteError):
    """Reading or writing a source or output file failed."""
