"""CodeK: a streaming chat engine that lets a model call workspace tools."""

__version__ = "0.1.0"
