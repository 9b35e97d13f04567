#!/usr/bin/env python3
"""
Tests for report_formatter.py - Console and JSON reports.
"""

import json
import unittest

import pytest

from report_formatter import ConsoleFormatter, JsonFormatter, get_formatter, write_report
from validation_result import Severity, SourceLocation, ValidationMessage, ValidationResult


def _result():
    messages = (
        ValidationMessage(
            severity=Severity.WARN,
            rule_id="listing.language.allowed",
            message="Listing block language has unsupported value",
            location=SourceLocation("b.adoc", 12),
            actual_value="ruby",
            expected_value="One of: java, python",
        ),
        ValidationMessage(
            severity=Severity.ERROR,
            rule_id="metadata.required",
            message="Missing required attribute 'author'",
            location=SourceLocation("a.adoc", 1),
            attribute_name="author",
        ),
        ValidationMessage(
            severity=Severity.INFO,
            rule_id="paragraph.lines.max",
            message="Paragraph has too many lines",
            location=SourceLocation("a.adoc", 8, 3),
        ),
    )
    return ValidationResult(messages=messages, validation_time_ms=42, files=("a.adoc", "b.adoc"))


class TestConsoleFormatter(unittest.TestCase):
    """Test the human readable report."""

    def test_message_block(self):
        text = ConsoleFormatter().format_message(_result().messages[0])
        self.assertEqual(text.splitlines(), [
            "  Line 12: [WARN] Listing block language has unsupported value",
            "    Rule: listing.language.allowed",
            '    Found: "ruby"',
            "    Expected: One of: java, python",
        ])

    def test_column_is_shown_when_known(self):
        text = ConsoleFormatter().format_message(_result().messages[2])
        self.assertTrue(text.startswith("  Line 8, Column 3: [INFO]"))
        self.assertNotIn("Found:", text)

    def test_report_groups_by_file(self):
        text = ConsoleFormatter().format(_result())
        self.assertTrue(text.startswith("Validation Report\n" + "=" * 60))
        self.assertLess(text.index("a.adoc"), text.index("b.adoc"))
        self.assertLess(text.index("Line 1:"), text.index("Line 8, Column 3:"))
        self.assertIn("Summary: 3 messages (1 errors, 1 warnings, 1 infos) in 2 files", text)
        self.assertIn("Validation time: 42 ms", text)
        self.assertNotIn("\033[", text)

    def test_empty_report(self):
        text = ConsoleFormatter().format(ValidationResult(files=("a.adoc",)))
        self.assertIn("No issues found.", text)
        self.assertIn("Summary: 0 messages (0 errors, 0 warnings, 0 infos) in 1 files", text)

    def test_colors(self):
        text = ConsoleFormatter(use_colors=True).format(_result())
        self.assertIn("\033[31m[ERROR]\033[0m", text)
        self.assertIn("\033[33m[WARN]\033[0m", text)


class TestJsonFormatter(unittest.TestCase):
    """Test the machine readable report."""

    def test_structure(self):
        data = json.loads(JsonFormatter().format(_result()))
        self.assertEqual(set(data), {"timestamp", "duration", "summary", "messages"})
        self.assertEqual(data["duration"], 42)
        self.assertEqual(data["summary"], {"totalMessages": 3, "errors": 1, "warnings": 1, "infos": 1})
        self.assertEqual(data["messages"][0]["ruleId"], "listing.language.allowed")
        self.assertEqual(data["messages"][0]["actualValue"], "ruby")
        self.assertEqual(data["messages"][1]["attributeName"], "author")
        self.assertEqual(data["messages"][2]["column"], 3)

    def test_compact(self):
        text = JsonFormatter(compact=True).format(_result())
        self.assertEqual(text.count("\n"), 1)
        self.assertNotIn('": ', text)
        self.assertEqual(json.loads(text)["summary"]["totalMessages"], 3)


# ============================================================================
# Factory and output
# ============================================================================

@pytest.mark.parametrize("name, formatter_type", [
    ("console", ConsoleFormatter),
    ("json", JsonFormatter),
    ("json-compact", JsonFormatter),
])
def test_get_formatter(name, formatter_type):
    assert isinstance(get_formatter(name), formatter_type)


def test_get_formatter_passes_colors():
    assert get_formatter("console", use_colors=True).use_colors


def test_get_formatter_unknown():
    with pytest.raises(ValueError, match="Unknown output format"):
        get_formatter("xml")


def test_write_report_to_stdout(capsys):
    write_report(_result(), ConsoleFormatter())
    assert "Validation Report" in capsys.readouterr().out


def test_write_report_to_file(tmp_path, capsys):
    output = tmp_path / "report.json"
    write_report(_result(), JsonFormatter(), output)
    assert capsys.readouterr().out == ""
    assert json.loads(output.read_text(encoding="utf-8"))["summary"]["errors"] == 1


if __name__ == '__main__':
    unittest.main()
