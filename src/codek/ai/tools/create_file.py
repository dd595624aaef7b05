"""Tool for creating new workspace files."""

from __future__ import annotations

from typing import Any, ClassVar

from ..orchestration.tools.types import ParameterSpec, ParameterType, ToolDefinition
from .base import WorkspaceTool, write_text
from .errors import FileExistsToolError

CREATE_FILE_DEFINITION = ToolDefinition(
    name="createFile",
    description=(
        "Creates a new file at the specified path with the provided content. "
        "Will create parent directories if they don't exist."
    ),
    parameters=(
        ParameterSpec("filePath", "The absolute or relative path to the file to create.", ParameterType.STRING, True),
        ParameterSpec("content", "The content to write to the file.", ParameterType.STRING, True),
    ),
    requires_approval=True,
)


class CreateFileTool(WorkspaceTool):
    """Create a file that does not exist yet; never overwrites."""

    definition: ClassVar[ToolDefinition] = CREATE_FILE_DEFINITION

    def perform(self, params: dict[str, str]) -> dict[str, Any]:
        path = self.resolve_path(params)
        display = self.workspace.relative(path)
        if path.exists():
            raise FileExistsToolError(message=f"File already exists: {display}", file_path=display)

        path.parent.mkdir(parents=True, exist_ok=True)
        try:
            write_text(path, params.get("content") or "", mode="x")
        except FileExistsError:
            raise FileExistsToolError(message=f"File already exists: {display}", file_path=display) from None
        return {
            "success": True,
            "filePath": display,
            "message": "File created successfully",
        }
