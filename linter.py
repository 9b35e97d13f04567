#!/usr/bin/env python3
"""
Linter - Entry point for validating AsciiDoc documents against a configuration.

Ties the pieces together: reads documents with the AsciiDoc reader, runs the
metadata validator and then the section validator (which validates blocks as
it walks the section tree), and collects the messages into a
ValidationResult per document.

Key Features:
- Validate an already parsed document, a string, a file, several files or a
  directory tree
- Unreadable or unparseable files become a single ERROR message when
  validating several files, so one broken file does not hide the others
- File discovery by glob pattern, optionally recursive
"""

import logging
from pathlib import Path
from typing import Dict, Iterable, List, Optional

from asciidoc_reader import AsciiDocReader, AsciiDocSyntaxError
from config_model import DocumentConfig
from document_model import DocumentNode
from metadata_validator import MetadataValidator
from section_validator import SectionValidator
from validation_result import (
    Severity,
    SourceLocation,
    ValidationMessage,
    ValidationResult,
    ValidationResultBuilder,
)

logger = logging.getLogger(__name__)

DEFAULT_PATTERN = "*.adoc"


class Linter:
    """
    Validates documents against a DocumentConfig.

    A Linter keeps no per-document state, so one instance can validate any
    number of documents with any number of configurations.
    """

    def __init__(self, reader: Optional[AsciiDocReader] = None):
        self.reader = reader or AsciiDocReader()

    def validate_document(self, document: DocumentNode, config: DocumentConfig,
                          filename: Optional[str] = None) -> ValidationResult:
        """
        Validate a parsed document.

        Args:
            document: Root node of the document
            config: Rules to validate against
            filename: File name for message locations; defaults to the
                      document's "docfile" attribute, then "unknown"

        Returns:
            ValidationResult with metadata messages followed by section and
            block messages
        """
        filename = filename or document.attribute("docfile") or "unknown"
        builder = ValidationResultBuilder().add_file(filename)
        builder.add_messages(MetadataValidator(config.metadata).validate(document, filename))
        builder.add_messages(SectionValidator(config.sections).validate(document, filename))
        result = builder.complete().build()
        logger.debug("%s: %d messages in %d ms", filename, len(result.messages), result.validation_time_ms)
        return result

    def validate_text(self, text: str, config: DocumentConfig, filename: str = "unknown") -> ValidationResult:
        """Parse AsciiDoc text and validate it."""
        document = self.reader.read(text, filename=filename)
        return self.validate_document(document, config, filename)

    def validate_file(self, path: str | Path, config: DocumentConfig) -> ValidationResult:
        """
        Read and validate one file.

        Raises:
            FileNotFoundError: If the path does not exist
            IsADirectoryError: If the path is a directory
            OSError: If the file cannot be read
            AsciiDocSyntaxError: If the file cannot be parsed
        """
        path = Path(path)
        if not path.exists():
            raise FileNotFoundError(f"File not found: {path}")
        if path.is_dir():
            raise IsADirectoryError(f"Not a file: {path}")
        logger.debug("Validating %s", path)
        document = self.reader.read_file(path, use_cache=False)
        return self.validate_document(document, config, str(path))

    def validate_files(self, paths: Iterable[str | Path], config: DocumentConfig) -> Dict[str, ValidationResult]:
        """
        Validate several files.

        Files that cannot be read or parsed yield a result holding a single
        ERROR message (rule id "io-error" or "parse-error") instead of raising.

        Returns:
            Results keyed by path, in the order the paths were given
        """
        results: Dict[str, ValidationResult] = {}
        for path in paths:
            name = str(path)
            try:
                results[name] = self.validate_file(path, config)
            except AsciiDocSyntaxError as e:
                logger.warning("Cannot parse %s: %s", name, e)
                results[name] = self._failure(name, "parse-error", f"Failed to parse document: {e}", e.line)
            except (OSError, UnicodeDecodeError) as e:
                logger.warning("Cannot read %s: %s", name, e)
                results[name] = self._failure(name, "io-error", f"Failed to read file: {e}")
        return results

    def validate_directory(self, directory: str | Path, config: DocumentConfig,
                           pattern: str = DEFAULT_PATTERN, recursive: bool = True) -> Dict[str, ValidationResult]:
        """Validate every file below a directory that matches a glob pattern."""
        return self.validate_files(self.discover_files([directory], pattern, recursive), config)

    @staticmethod
    def discover_files(paths: Iterable[str | Path], pattern: str = DEFAULT_PATTERN,
                       recursive: bool = True) -> List[Path]:
        """
        Expand files and directories into a list of files to validate.

        Files given explicitly are kept whatever their name; directories are
        searched for the pattern. Duplicates are dropped, first occurrence wins.

        Raises:
            FileNotFoundError: If a given path does not exist
        """
        found: List[Path] = []
        for path in paths:
            path = Path(path)
            if path.is_dir():
                matches = path.rglob(pattern) if recursive else path.glob(pattern)
                candidates = sorted(match for match in matches if match.is_file())
                logger.debug("Found %d files matching %s in %s", len(candidates), pattern, path)
            elif path.exists():
                candidates = [path]
            else:
                raise FileNotFoundError(f"Path not found: {path}")
            for candidate in candidates:
                if candidate not in found:
                    found.append(candidate)
        return found

    @staticmethod
    def _failure(filename: str, rule_id: str, text: str, line: int = 1) -> ValidationResult:
        message = ValidationMessage(
            severity=Severity.ERROR,
            rule_id=rule_id,
            message=text,
            location=SourceLocation(filename, max(line, 1)),
        )
        return ValidationResultBuilder().add_file(filename).add_message(message).build()
