"""Structured validation results returned by configuration steps instead of raw exceptions."""

import dataclasses
from enum import StrEnum


class Severity(StrEnum):
    ERROR = "error"
    WARNING = "warning"


@dataclasses.dataclass(slots=True, kw_only=True, frozen=True)
class SourceRange:
    """Identifies where in a configuration source a value was declared.

    filename names the source (a file path, or "env:<VARIABLE>" for inline configuration). pointer is a JSON Pointer
    (RFC 6901) into that source; the empty string refers to the whole document.
    """

    filename: str
    pointer: str = ""

    def child(self, *tokens: str | int) -> "SourceRange":
        """Returns the range of a value nested below this one."""
        escaped = [str(t).replace("~", "~0").replace("/", "~1") for t in tokens]
        return SourceRange(filename=self.filename, pointer="/".join([self.pointer, *escaped]))

    def __str__(self):
        return f"{self.filename}#{self.pointer}" if self.pointer else self.filename


@dataclasses.dataclass(slots=True, kw_only=True, frozen=True)
class Diagnostic:
    severity: Severity
    summary: str
    detail: str = ""
    subject: SourceRange | None = None

    def __str__(self):
        where = f"{self.subject}: " if self.subject else ""
        detail = f"; {self.detail}" if self.detail else ""
        return f"{where}{self.severity}: {self.summary}{detail}"


class Diagnostics(list[Diagnostic]):
    """An ordered collection of diagnostics."""

    def has_errors(self) -> bool:
        return any(d.severity == Severity.ERROR for d in self)

    def errors(self) -> "Diagnostics":
        return Diagnostics(d for d in self if d.severity == Severity.ERROR)

    def error(self, summary: str, detail: str = "", subject: SourceRange | None = None):
        """Appends an error diagnostic."""
        self.append(Diagnostic(severity=Severity.ERROR, summary=summary, detail=detail, subject=subject))

    def warning(self, summary: str, detail: str = "", subject: SourceRange | None = None):
        """Appends a warning diagnostic."""
        self.append(Diagnostic(severity=Severity.WARNING, summary=summary, detail=detail, subject=subject))

    def __str__(self):
        return "\n".join(str(d) for d in self)
