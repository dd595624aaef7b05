"""Registration of the built-in file tools."""

from __future__ import annotations

import logging
from pathlib import Path

from ..orchestration.tools.registry import ToolRegistry
from .base import WorkspaceTool
from .create_file import CreateFileTool
from .read_file import ReadFileTool
from .workspace import Workspace
from .write_file import WriteFileTool

__all__ = ["DEFAULT_TOOL_TYPES", "build_default_registry"]

LOGGER = logging.getLogger(__name__)

# Registration order is the order the model sees the tools in.
DEFAULT_TOOL_TYPES: tuple[type[WorkspaceTool], ...] = (
    ReadFileTool,
    WriteFileTool,
    CreateFileTool,
)


def build_default_registry(
    workspace: Workspace | Path | str,
    registry: ToolRegistry | None = None,
) -> ToolRegistry:
    """Register ``readFile``, ``writeFile`` and ``createFile`` rooted at ``workspace``.

    Raises:
        DuplicateToolError: If ``registry`` already holds one of the names.
    """
    if not isinstance(workspace, Workspace):
        workspace = Workspace(Path(workspace))
    registry = registry if registry is not None else ToolRegistry()
    for tool_type in DEFAULT_TOOL_TYPES:
        registry.register(tool_type(workspace))
    LOGGER.debug("Registered %d file tool(s) rooted at %s", len(DEFAULT_TOOL_TYPES), workspace.root)
    return registry
