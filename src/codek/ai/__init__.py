"""Model access, conversation orchestration and the built-in tools."""
