"""Built-in tools that let the model read and edit files in a workspace."""

from .base import WorkspaceTool
from .create_file import CREATE_FILE_DEFINITION, CreateFileTool
from .errors import ErrorCode, ToolError
from .read_file import MAX_READ_LINES, READ_FILE_DEFINITION, ReadFileTool
from .wiring import DEFAULT_TOOL_TYPES, build_default_registry
from .workspace import Workspace
from .write_file import WRITE_FILE_DEFINITION, WriteFileTool

__all__ = [
    "WorkspaceTool",
    "Workspace",
    "ErrorCode",
    "ToolError",
    "MAX_READ_LINES",
    "READ_FILE_DEFINITION",
    "ReadFileTool",
    "WRITE_FILE_DEFINITION",
    "WriteFileTool",
    "CREATE_FILE_DEFINITION",
    "CreateFileTool",
    "DEFAULT_TOOL_TYPES",
    "build_default_registry",
]
