"""Tool for reading workspace files, whole or by 1-based line range."""

from __future__ import annotations

from typing import Any, ClassVar

from ..orchestration.tools.types import ParameterSpec, ParameterType, ToolDefinition
from .base import WorkspaceTool, read_text, split_lines
from .errors import InvalidLineRangeError

# Maximum lines returned by a single call
MAX_READ_LINES = 500

READ_FILE_DEFINITION = ToolDefinition(
    name="readFile",
    description=(
        "Reads the content of a specified file. Can read the entire file or a "
        "specific range of lines."
    ),
    parameters=(
        ParameterSpec("filePath", "The absolute or relative path to the file.", ParameterType.STRING, True),
        ParameterSpec("startLine", "The 1-based starting line number (inclusive). Optional.", ParameterType.INTEGER),
        ParameterSpec("endLine", "The 1-based ending line number (inclusive). Optional.", ParameterType.INTEGER),
    ),
)


class ReadFileTool(WorkspaceTool):
    """Read file content with line metadata.

    Parameters:
        filePath: Path relative to the workspace root, or absolute inside it.
        startLine: First line to read, 1-based (optional, defaults to 1).
        endLine: Last line to read, inclusive (optional, defaults to the end).

    At most ``MAX_READ_LINES`` lines are returned; a ``warning`` field says
    when the result was truncated.
    """

    definition: ClassVar[ToolDefinition] = READ_FILE_DEFINITION

    def perform(self, params: dict[str, str]) -> dict[str, Any]:
        path = self.resolve_existing_file(params)
        display = self.workspace.relative(path)
        start = self.optional_int(params, "startLine")
        end = self.optional_int(params, "endLine")

        lines = split_lines(read_text(path))
        total = len(lines)
        warning: str | None = None

        if start is None and end is None:
            first, last = 1, min(total, MAX_READ_LINES)
            if total > MAX_READ_LINES:
                warning = f"File truncated to first {MAX_READ_LINES} lines."
        else:
            first = start if start is not None else 1
            last = end if end is not None else total
            if first < 1 or last < first or first > total:
                raise InvalidLineRangeError(
                    message=f"Invalid line numbers: startLine={first}, endLine={last}, totalLines={total}",
                    start_line=first,
                    end_line=last,
                    total_lines=total,
                )
            last = min(last, total)
            if last - first + 1 > MAX_READ_LINES:
                last = first + MAX_READ_LINES - 1
                warning = f"Range truncated to lines {first}-{last} ({MAX_READ_LINES} line limit)."

        content = "".join(lines[first - 1:last])
        # The final line's terminator is not part of the range.
        if content.endswith("\r\n"):
            content = content[:-2]
        elif content.endswith(("\n", "\r")):
            content = content[:-1]

        result: dict[str, Any] = {
            "filePath": display,
            "content": content,
            "startLine": first if total else 0,
            "endLine": last,
            "totalLines": total,
        }
        if warning:
            result["warning"] = warning
        return result
