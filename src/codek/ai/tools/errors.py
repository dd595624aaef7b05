"""Standardized error types for the built-in workspace tools.

Tools raise these; the executor turns them into error-shaped JSON payloads
that merge :meth:`ToolError.to_dict` into the ``tool`` message content.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any


# -----------------------------------------------------------------------------
# Error Code Constants
# -----------------------------------------------------------------------------

class ErrorCode:
    """Constants for error codes used in tool responses."""

    # Path errors
    FILE_NOT_FOUND = "file_not_found"
    NOT_A_FILE = "not_a_file"
    FILE_EXISTS = "file_exists"
    PATH_OUTSIDE_WORKSPACE = "path_outside_workspace"

    # Range errors
    INVALID_LINE_RANGE = "invalid_line_range"

    # Content errors
    INVALID_ENCODING = "invalid_encoding"

    # Parameter errors
    INVALID_PARAMETER = "invalid_parameter"
    MISSING_PARAMETER = "missing_parameter"


# -----------------------------------------------------------------------------
# Base Error Class
# -----------------------------------------------------------------------------

@dataclass
class ToolError(Exception):
    """Base exception class for all tool errors.

    Attributes:
        error_code: Machine-readable error identifier.
        message: Human-readable error description.
        details: Additional structured error information.
        suggestion: Actionable guidance for recovery.
    """

    error_code: str
    message: str
    details: dict[str, Any] = field(default_factory=dict)
    suggestion: str = ""

    def __post_init__(self) -> None:
        Exception.__init__(self, self.message)

    def to_dict(self) -> dict[str, Any]:
        """Serialize to a dictionary for JSON tool responses."""
        result: dict[str, Any] = {
            "code": self.error_code,
            "message": self.message,
        }
        if self.details:
            result["details"] = dict(self.details)
        if self.suggestion:
            result["suggestion"] = self.suggestion
        return result

    def __str__(self) -> str:
        return f"[{self.error_code}] {self.message}"


# -----------------------------------------------------------------------------
# Path Errors
# -----------------------------------------------------------------------------

@dataclass
class FileNotFoundToolError(ToolError):
    """Error raised when the target file does not exist."""

    error_code: str = field(default=ErrorCode.FILE_NOT_FOUND)
    message: str = field(default="File not found")
    details: dict[str, Any] = field(default_factory=dict)
    suggestion: str = field(default="Check the path; use createFile to make a new file")

    file_path: str | None = field(default=None)

    def to_dict(self) -> dict[str, Any]:
        result = super().to_dict()
        if self.file_path is not None:
            result["filePath"] = self.file_path
        return result


@dataclass
class NotAFileError(ToolError):
    """Error raised when the path names a directory or other non-file."""

    error_code: str = field(default=ErrorCode.NOT_A_FILE)
    message: str = field(default="Path is not a regular file")
    details: dict[str, Any] = field(default_factory=dict)
    suggestion: str = field(default="Provide the path of a file, not a directory")

    file_path: str | None = field(default=None)

    def to_dict(self) -> dict[str, Any]:
        result = super().to_dict()
        if self.file_path is not None:
            result["filePath"] = self.file_path
        return result


@dataclass
class FileExistsToolError(ToolError):
    """Error raised when creating a file that already exists."""

    error_code: str = field(default=ErrorCode.FILE_EXISTS)
    message: str = field(default="File already exists")
    details: dict[str, Any] = field(default_factory=dict)
    suggestion: str = field(default="Use writeFile to modify an existing file")

    file_path: str | None = field(default=None)

    def to_dict(self) -> dict[str, Any]:
        result = super().to_dict()
        if self.file_path is not None:
            result["filePath"] = self.file_path
        return result


@dataclass
class PathOutsideWorkspaceError(ToolError):
    """Error raised when a path resolves outside the workspace root."""

    error_code: str = field(default=ErrorCode.PATH_OUTSIDE_WORKSPACE)
    message: str = field(default="Path is outside the workspace")
    details: dict[str, Any] = field(default_factory=dict)
    suggestion: str = field(default="Use a path relative to the workspace root")

    file_path: str | None = field(default=None)

    def to_dict(self) -> dict[str, Any]:
        result = super().to_dict()
        if self.file_path is not None:
            result["filePath"] = self.file_path
        return result


# -----------------------------------------------------------------------------
# Range Errors
# -----------------------------------------------------------------------------

@dataclass
class InvalidLineRangeError(ToolError):
    """Error raised when line range parameters are invalid."""

    error_code: str = field(default=ErrorCode.INVALID_LINE_RANGE)
    message: str = field(default="Invalid line range specified")
    details: dict[str, Any] = field(default_factory=dict)
    suggestion: str = field(default="Use 1-based line numbers with startLine <= endLine")

    start_line: int | None = field(default=None)
    end_line: int | None = field(default=None)
    total_lines: int | None = field(default=None)

    def to_dict(self) -> dict[str, Any]:
        result = super().to_dict()
        if self.start_line is not None:
            result["startLine"] = self.start_line
        if self.end_line is not None:
            result["endLine"] = self.end_line
        if self.total_lines is not None:
            result["totalLines"] = self.total_lines
        return result


# -----------------------------------------------------------------------------
# Content Errors
# -----------------------------------------------------------------------------

@dataclass
class InvalidEncodingError(ToolError):
    """Error raised when a line edit targets a file that is not valid UTF-8."""

    error_code: str = field(default=ErrorCode.INVALID_ENCODING)
    message: str = field(default="File is not valid UTF-8")
    details: dict[str, Any] = field(default_factory=dict)
    suggestion: str = field(default="Rewrite the whole file instead of a line range")

    file_path: str | None = field(default=None)

    def to_dict(self) -> dict[str, Any]:
        result = super().to_dict()
        if self.file_path is not None:
            result["filePath"] = self.file_path
        return result


# -----------------------------------------------------------------------------
# Parameter Errors
# -----------------------------------------------------------------------------

@dataclass
class InvalidParameterError(ToolError):
    """Error raised when a parameter value is invalid."""

    error_code: str = field(default=ErrorCode.INVALID_PARAMETER)
    message: str = field(default="Invalid parameter value")
    details: dict[str, Any] = field(default_factory=dict)
    suggestion: str = field(default="Check the parameter requirements")

    parameter: str | None = field(default=None)
    value: Any = field(default=None)
    expected: str | None = field(default=None)

    def to_dict(self) -> dict[str, Any]:
        result = super().to_dict()
        if self.parameter is not None:
            result["parameter"] = self.parameter
        if self.value is not None:
            result["value"] = repr(self.value)
        if self.expected is not None:
            result["expected"] = self.expected
        return result


@dataclass
class MissingParameterError(ToolError):
    """Error raised when a required parameter is missing."""

    error_code: str = field(default=ErrorCode.MISSING_PARAMETER)
    message: str = field(default="Required parameter is missing")
    details: dict[str, Any] = field(default_factory=dict)
    suggestion: str = field(default="Provide the required parameter")

    parameter: str | None = field(default=None)

    def to_dict(self) -> dict[str, Any]:
        result = super().to_dict()
        if self.parameter is not None:
            result["parameter"] = self.parameter
        return result


__all__ = [
    "ErrorCode",
    "ToolError",
    "FileNotFoundToolError",
    "NotAFileError",
    "FileExistsToolError",
    "PathOutsideWorkspaceError",
    "InvalidLineRangeError",
    "InvalidParameterError",
    "MissingParameterError",
    "InvalidEncodingError",
]
