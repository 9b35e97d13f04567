#!/usr/bin/env python3
"""
Validation Result - Located, typed diagnostics produced by the validators.

Every rule that fails produces one ValidationMessage. Messages are collected
into an immutable ValidationResult which offers the views the report writers
and the command line need.

Key Features:
- Severity levels ordered INFO < WARN < ERROR
- Source locations rendered as file:line[:column][-end]
- Immutable messages carrying rule id, actual and expected values
- Views by severity, by file and by line
- Builder that records the elapsed validation time
"""

import time
from dataclasses import dataclass, field
from enum import Enum
from functools import total_ordering
from typing import Dict, Iterable, List, Optional, Tuple


@total_ordering
class Severity(Enum):
    """Ordinal diagnostic level attached to every rule and message."""

    INFO = "info"
    WARN = "warn"
    ERROR = "error"

    @property
    def rank(self) -> int:
        return _SEVERITY_RANK[self]

    def __lt__(self, other):
        if not isinstance(other, Severity):
            return NotImplemented
        return self.rank < other.rank

    @classmethod
    def parse(cls, value: str) -> "Severity":
        """
        Parse a severity name as written in configuration files.

        Names are case-insensitive and "warning" is accepted for WARN.

        Args:
            value: Severity name ("error", "warn", "warning" or "info")

        Returns:
            Matching Severity member

        Raises:
            ValueError: If the name is not a known severity
        """
        if isinstance(value, Severity):
            return value
        if not isinstance(value, str):
            raise ValueError(f"Invalid severity: {value!r}")
        normalized = value.strip().lower()
        if normalized == "warning":
            normalized = "warn"
        for member in cls:
            if member.value == normalized:
                return member
        raise ValueError(f"Invalid severity: '{value}' (expected one of: error, warn, info)")


_SEVERITY_RANK = {Severity.INFO: 0, Severity.WARN: 1, Severity.ERROR: 2}


@dataclass(frozen=True)
class SourceLocation:
    """
    Position of a diagnostic inside a source file.

    Attributes:
        filename: Name or path of the validated file
        line: 1-based start line
        column: 1-based start column, 0 when unknown
        end_line: Optional last line of a multi-line range
        end_column: Optional last column on the start line
    """
    filename: str
    line: int = 1
    column: int = 0
    end_line: Optional[int] = None
    end_column: Optional[int] = None

    def format_location(self) -> str:
        """
        Render the location in compiler style.

        Returns:
            Location string

        Example:
            >>> SourceLocation("doc.adoc", 10, 5, end_column=15).format_location()
            'doc.adoc:10:5-15'
            >>> SourceLocation("doc.adoc", 10, end_line=15).format_location()
            'doc.adoc:10-15'
        """
        text = f"{self.filename}:{self.line}"
        if self.column > 0:
            text += f":{self.column}"
            single_line = self.end_line is None or self.end_line == self.line
            if single_line and self.end_column and self.end_column != self.column:
                text += f"-{self.end_column}"
        elif self.end_line and self.end_line != self.line:
            text += f"-{self.end_line}"
        return text

    def __str__(self) -> str:
        return self.format_location()


@dataclass(frozen=True)
class ValidationMessage:
    """
    One diagnostic produced by a failed rule.

    Attributes:
        severity: Resolved severity of the rule that failed
        rule_id: Stable dotted rule identifier, e.g. "listing.language.required"
        message: Human readable description
        location: Where the problem was found
        attribute_name: Document attribute involved, for metadata rules
        actual_value: What was found (None when nothing was found)
        expected_value: What the rule expected
    """
    severity: Severity
    rule_id: str
    message: str
    location: SourceLocation
    attribute_name: Optional[str] = None
    actual_value: Optional[str] = None
    expected_value: Optional[str] = None

    def format(self) -> str:
        """
        Format the message for console output.

        Returns:
            Formatted message

        Example:
            guide.adoc:12: [WARN] Listing block has unsupported language
              Found: "ruby"
              Expected: One of: java, python
        """
        parts = [f"{self.location.format_location()}: [{self.severity.name}] {self.message}"]
        if self.actual_value is not None:
            parts.append(f'  Found: "{self.actual_value}"')
        if self.expected_value is not None:
            parts.append(f"  Expected: {self.expected_value}")
        return "\n".join(parts)

    def to_dict(self) -> Dict[str, object]:
        """Plain dictionary form used by the JSON report."""
        data: Dict[str, object] = {
            "file": self.location.filename,
            "line": self.location.line,
        }
        if self.location.column > 0:
            data["column"] = self.location.column
        data["severity"] = self.severity.name
        data["ruleId"] = self.rule_id
        data["message"] = self.message
        if self.attribute_name is not None:
            data["attributeName"] = self.attribute_name
        if self.actual_value is not None:
            data["actualValue"] = self.actual_value
        if self.expected_value is not None:
            data["expectedValue"] = self.expected_value
        return data


def _sort_key(message: ValidationMessage) -> Tuple[int, int]:
    return (message.location.line, message.location.column)


@dataclass(frozen=True)
class ValidationResult:
    """
    Immutable outcome of a validation run.

    Messages keep the order in which validators produced them; the grouped
    views sort by position.
    """
    messages: Tuple[ValidationMessage, ...] = ()
    validation_time_ms: int = 0
    files: Tuple[str, ...] = field(default=())

    @property
    def errors(self) -> List[ValidationMessage]:
        return self.with_severity(Severity.ERROR)

    @property
    def warnings(self) -> List[ValidationMessage]:
        return self.with_severity(Severity.WARN)

    @property
    def infos(self) -> List[ValidationMessage]:
        return self.with_severity(Severity.INFO)

    @property
    def error_count(self) -> int:
        return len(self.errors)

    @property
    def warning_count(self) -> int:
        return len(self.warnings)

    @property
    def info_count(self) -> int:
        return len(self.infos)

    @property
    def has_errors(self) -> bool:
        return any(m.severity is Severity.ERROR for m in self.messages)

    @property
    def has_warnings(self) -> bool:
        return any(m.severity is Severity.WARN for m in self.messages)

    @property
    def has_messages(self) -> bool:
        return bool(self.messages)

    def with_severity(self, severity: Severity) -> List[ValidationMessage]:
        return [m for m in self.messages if m.severity is severity]

    def at_or_above(self, severity: Severity) -> List[ValidationMessage]:
        """Messages whose severity is at least the given level."""
        return [m for m in self.messages if m.severity >= severity]

    def by_severity(self) -> Dict[Severity, List[ValidationMessage]]:
        """Messages partitioned by severity, most severe first."""
        grouped: Dict[Severity, List[ValidationMessage]] = {}
        for severity in sorted(Severity, reverse=True):
            grouped[severity] = self.with_severity(severity)
        return grouped

    def messages_by_file(self) -> Dict[str, List[ValidationMessage]]:
        """Messages grouped by file name, each group sorted by line and column."""
        grouped: Dict[str, List[ValidationMessage]] = {}
        for message in self.messages:
            grouped.setdefault(message.location.filename, []).append(message)
        return {name: sorted(group, key=_sort_key) for name, group in sorted(grouped.items())}

    def messages_by_line(self, filename: Optional[str] = None) -> Dict[int, List[ValidationMessage]]:
        """
        Messages grouped by start line.

        Args:
            filename: Restrict the view to one file (all files when None)

        Returns:
            Mapping of line number to messages, in ascending line order
        """
        grouped: Dict[int, List[ValidationMessage]] = {}
        for message in self.messages:
            if filename is not None and message.location.filename != filename:
                continue
            grouped.setdefault(message.location.line, []).append(message)
        return dict(sorted(grouped.items()))

    @classmethod
    def merge(cls, results: Iterable["ValidationResult"]) -> "ValidationResult":
        """Combine several results (one per file) into one."""
        messages: List[ValidationMessage] = []
        files: List[str] = []
        elapsed = 0
        for result in results:
            messages.extend(result.messages)
            files.extend(name for name in result.files if name not in files)
            elapsed += result.validation_time_ms
        return cls(messages=tuple(messages), validation_time_ms=elapsed, files=tuple(files))


class ValidationResultBuilder:
    """
    Collects messages during a run and freezes them into a ValidationResult.

    The clock starts when the builder is created; complete() stops it.
    """

    def __init__(self):
        self._messages: List[ValidationMessage] = []
        self._files: List[str] = []
        self._started = time.perf_counter()
        self._elapsed_ms: Optional[int] = None

    def add_message(self, message: ValidationMessage) -> "ValidationResultBuilder":
        self._messages.append(message)
        return self

    def add_messages(self, messages: Iterable[ValidationMessage]) -> "ValidationResultBuilder":
        self._messages.extend(messages)
        return self

    def add_file(self, filename: str) -> "ValidationResultBuilder":
        if filename not in self._files:
            self._files.append(filename)
        return self

    def complete(self) -> "ValidationResultBuilder":
        self._elapsed_ms = int((time.perf_counter() - self._started) * 1000)
        return self

    def build(self) -> ValidationResult:
        if self._elapsed_ms is None:
            self.complete()
        return ValidationResult(
            messages=tuple(self._messages),
            validation_time_ms=self._elapsed_ms,
            files=tuple(self._files),
        )
