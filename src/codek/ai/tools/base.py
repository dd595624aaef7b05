"""Base class for the built-in workspace file tools.

Subclasses declare a :class:`ToolDefinition` and implement :meth:`perform`;
the base class validates required parameters, runs the blocking file work
on a worker thread and encodes the result dict as JSON.
"""

from __future__ import annotations

import asyncio
import json
import logging
import re
import time
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Any, ClassVar, Mapping

from ..orchestration.tools.types import ToolDefinition
from .errors import (
    FileNotFoundToolError,
    InvalidParameterError,
    MissingParameterError,
    NotAFileError,
)
from .workspace import Workspace

__all__ = [
    "WorkspaceTool",
    "split_lines",
    "line_ending",
    "read_text",
    "write_text",
]

LOGGER = logging.getLogger(__name__)

_LINE_RE = re.compile(r"[^\r\n]*(?:\r\n|\n|\r)|[^\r\n]+")


def split_lines(text: str) -> list[str]:
    """Split text into lines, keeping each line's own ending.

    ``"a\\r\\nb"`` becomes ``["a\\r\\n", "b"]``; empty text has no lines.
    """
    return _LINE_RE.findall(text)


def line_ending(line: str) -> str:
    if line.endswith("\r\n"):
        return "\r\n"
    if line.endswith(("\n", "\r")):
        return line[-1]
    return ""


def read_text(path: Path, *, strict: bool = False) -> str:
    """Read a UTF-8 file without translating line endings.

    Undecodable bytes become U+FFFD unless ``strict`` is set, in which case
    :class:`UnicodeDecodeError` propagates. Text that is written back must be
    read strictly.
    """
    errors = "strict" if strict else "replace"
    with path.open("r", encoding="utf-8", errors=errors, newline="") as handle:
        return handle.read()


def write_text(path: Path, text: str, *, mode: str = "w") -> None:
    with path.open(mode, encoding="utf-8", newline="") as handle:
        handle.write(text)


class WorkspaceTool(ABC):
    """Abstract base class for tools operating on files in a workspace.

    Example:
        class CountLinesTool(WorkspaceTool):
            definition = ToolDefinition(name="countLines", description="Count lines")

            def perform(self, params: dict[str, str]) -> dict[str, Any]:
                path = self.resolve_existing_file(params)
                return {"lines": len(split_lines(read_text(path)))}
    """

    definition: ClassVar[ToolDefinition]

    def __init__(self, workspace: Workspace) -> None:
        self.workspace = workspace

    @property
    def name(self) -> str:
        return self.definition.name

    async def execute(self, arguments: Mapping[str, str]) -> str:
        return await asyncio.to_thread(self.run, arguments)

    def run(self, arguments: Mapping[str, str]) -> str:
        """Validate, perform and JSON-encode one call; tool errors propagate."""
        start_time = time.perf_counter()
        params = dict(arguments)
        self.validate(params)
        result = self.perform(params)
        LOGGER.debug(
            "%s finished in %.1fms",
            self.name,
            (time.perf_counter() - start_time) * 1000.0,
        )
        return json.dumps(result, ensure_ascii=False)

    @abstractmethod
    def perform(self, params: dict[str, str]) -> dict[str, Any]:
        """Execute the tool's core logic.

        Raises:
            ToolError: For expected error conditions.
        """
        ...

    def validate(self, params: dict[str, str]) -> None:
        """Check that every required parameter was supplied."""
        for name in self.definition.required_parameters:
            if params.get(name) is None:
                raise MissingParameterError(
                    message=f"Missing required parameter: {name}",
                    parameter=name,
                )

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------
    def resolve_path(self, params: Mapping[str, str], name: str = "filePath") -> Path:
        raw = (params.get(name) or "").strip()
        if not raw:
            raise MissingParameterError(message=f"Missing required parameter: {name}", parameter=name)
        return self.workspace.resolve(raw)

    def resolve_existing_file(self, params: Mapping[str, str], name: str = "filePath") -> Path:
        path = self.resolve_path(params, name)
        display = self.workspace.relative(path)
        if not path.exists():
            raise FileNotFoundToolError(message=f"File not found: {display}", file_path=display)
        if not path.is_file():
            raise NotAFileError(message=f"Path is a directory, not a file: {display}", file_path=display)
        return path

    @staticmethod
    def optional_int(params: Mapping[str, str], name: str) -> int | None:
        raw = params.get(name)
        if raw is None or not raw.strip():
            return None
        try:
            return int(raw.strip())
        except ValueError:
            raise InvalidParameterError(
                message=f"Invalid number format for {name}: {raw}",
                parameter=name,
                value=raw,
                expected="integer",
            ) from None
