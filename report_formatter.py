#!/usr/bin/env python3
"""
Report Formatter - Console and JSON renderings of a ValidationResult.

Formatters are looked up by name in FORMATTERS, so the command line only
needs to know the format names.
"""

import json
import sys
from datetime import datetime, timezone
from pathlib import Path
from typing import Callable, Dict, Optional

from validation_result import Severity, ValidationMessage, ValidationResult


RESET = "\033[0m"
BOLD = "\033[1m"
SEVERITY_COLORS = {
    Severity.ERROR: "\033[31m",
    Severity.WARN: "\033[33m",
    Severity.INFO: "\033[36m",
}


class ConsoleFormatter:
    """Human readable report grouped by file, with optional ANSI colours."""

    def __init__(self, use_colors: bool = False):
        self.use_colors = use_colors

    def _style(self, text: str, code: str) -> str:
        if not self.use_colors:
            return text
        return f"{code}{text}{RESET}"

    def format_message(self, message: ValidationMessage) -> str:
        """
        Format one message below its file heading.

        Example:
              Line 12: [WARN] Listing block language has unsupported value
                Rule: listing.language.allowed
                Found: "ruby"
                Expected: One of: java, python
        """
        position = f"Line {message.location.line}"
        if message.location.column > 0:
            position += f", Column {message.location.column}"
        severity = self._style(f"[{message.severity.name}]", SEVERITY_COLORS[message.severity])
        lines = [f"  {position}: {severity} {message.message}", f"    Rule: {message.rule_id}"]
        if message.actual_value is not None:
            lines.append(f'    Found: "{message.actual_value}"')
        if message.expected_value is not None:
            lines.append(f"    Expected: {message.expected_value}")
        return "\n".join(lines)

    def format(self, result: ValidationResult) -> str:
        lines = [self._style("Validation Report", BOLD), "=" * 60, ""]

        if not result.has_messages:
            lines.append("No issues found.")
            lines.append("")
        for filename, messages in result.messages_by_file().items():
            lines.append(self._style(filename, BOLD))
            lines.extend(self.format_message(message) for message in messages)
            lines.append("")

        lines.append("-" * 60)
        lines.append(
            f"Summary: {len(result.messages)} messages "
            f"({result.error_count} errors, {result.warning_count} warnings, {result.info_count} infos) "
            f"in {len(result.files)} files"
        )
        lines.append(f"Validation time: {result.validation_time_ms} ms")
        return "\n".join(lines) + "\n"


class JsonFormatter:
    """Machine readable report."""

    def __init__(self, compact: bool = False):
        self.compact = compact

    @staticmethod
    def to_dict(result: ValidationResult) -> Dict[str, object]:
        return {
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "duration": result.validation_time_ms,
            "summary": {
                "totalMessages": len(result.messages),
                "errors": result.error_count,
                "warnings": result.warning_count,
                "infos": result.info_count,
            },
            "messages": [message.to_dict() for message in result.messages],
        }

    def format(self, result: ValidationResult) -> str:
        if self.compact:
            return json.dumps(self.to_dict(result), separators=(",", ":")) + "\n"
        return json.dumps(self.to_dict(result), indent=2) + "\n"


# Formatter factories by output format name; each takes the use_colors flag
FORMATTERS: Dict[str, Callable[[bool], object]] = {
    "console": lambda use_colors: ConsoleFormatter(use_colors),
    "json": lambda use_colors: JsonFormatter(compact=False),
    "json-compact": lambda use_colors: JsonFormatter(compact=True),
}


def get_formatter(name: str, use_colors: bool = False):
    """
    Create the formatter for an output format.

    Raises:
        ValueError: If the format name is unknown
    """
    factory = FORMATTERS.get(name)
    if factory is None:
        raise ValueError(f"Unknown output format: '{name}' (expected one of: {', '.join(FORMATTERS)})")
    return factory(use_colors)


def write_report(result: ValidationResult, formatter, output: Optional[str | Path] = None):
    """Write a formatted report to a file, or to stdout when no file is given."""
    text = formatter.format(result)
    if output is None:
        sys.stdout.write(text)
    else:
        Path(output).write_text(text, encoding="utf-8")
