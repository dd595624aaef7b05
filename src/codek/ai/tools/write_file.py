"""Tool for overwriting a workspace file or an inclusive range of its lines."""

from __future__ import annotations

from typing import Any, ClassVar

from ..orchestration.tools.types import ParameterSpec, ParameterType, ToolDefinition
from .base import WorkspaceTool, line_ending, read_text, split_lines, write_text
from .errors import InvalidEncodingError, InvalidLineRangeError

WRITE_FILE_DEFINITION = ToolDefinition(
    name="writeFile",
    description=(
        "Writes content to a specified file. Can replace the entire file or a "
        "specific range of lines. Give both startLine and endLine to replace a "
        "range, or neither to replace the whole file; giving only one is an error."
    ),
    parameters=(
        ParameterSpec("filePath", "The absolute or relative path to the file.", ParameterType.STRING, True),
        ParameterSpec("content", "The content to write to the file.", ParameterType.STRING, True),
        ParameterSpec("startLine", "The 1-based starting line number (inclusive). Optional.", ParameterType.INTEGER),
        ParameterSpec("endLine", "The 1-based ending line number (inclusive). Optional.", ParameterType.INTEGER),
    ),
    requires_approval=True,
)


class WriteFileTool(WorkspaceTool):
    """Replace a file's content, or lines ``startLine..endLine`` of it.

    A range replacement keeps the line ending that followed the range, so
    ``content`` should not carry its own trailing newline. An ``endLine``
    past the end of the file is clamped. Range edits refuse files that are
    not valid UTF-8 rather than rewrite their undecodable bytes.
    """

    definition: ClassVar[ToolDefinition] = WRITE_FILE_DEFINITION

    def perform(self, params: dict[str, str]) -> dict[str, Any]:
        path = self.resolve_existing_file(params)
        display = self.workspace.relative(path)
        content = params.get("content") or ""
        start = self.optional_int(params, "startLine")
        end = self.optional_int(params, "endLine")

        if start is None and end is None:
            write_text(path, content)
            return {
                "success": True,
                "filePath": display,
                "message": "Content written to entire file",
            }

        try:
            lines = split_lines(read_text(path, strict=True))
        except UnicodeDecodeError as exc:
            raise InvalidEncodingError(
                message=f"File is not valid UTF-8: {display} (byte {exc.start})",
                file_path=display,
            ) from None
        total = len(lines)
        if start is None or end is None or start < 1 or end < start or start > total:
            raise InvalidLineRangeError(
                message=(
                    f"Invalid line numbers: startLine={start}, endLine={end}, totalLines={total}"
                ),
                start_line=start,
                end_line=end,
                total_lines=total,
            )

        last = min(end, total)
        updated = (
            "".join(lines[: start - 1])
            + content
            + line_ending(lines[last - 1])
            + "".join(lines[last:])
        )
        write_text(path, updated)
        return {
            "success": True,
            "filePath": display,
            "startLine": start,
            "endLine": last,
            "message": "Content written to specific lines",
        }
