"""Command line front end for the CodeK chat engine."""

from __future__ import annotations

import argparse
import asyncio
import json
import logging
import sys
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, Mapping, Sequence, TextIO, get_args, get_origin, get_type_hints

from .ai.client import AIClient
from .ai.errors import ErrorKind
from .ai.orchestration import (
    ChatOrchestrator,
    ExecutorConfig,
    Message,
    OrchestratorConfig,
    ToolDefinition,
    ToolExecutor,
    ToolRegistry,
)
from .ai.prompts import assemble_system_prompt, with_system_prompt
from .ai.tools import build_default_registry
from .services.settings import Settings, active_env_overrides, load_settings
from .utils import logging as logging_utils

_TRUE_VALUES = {"1", "true", "yes", "on", "debug"}
_FALSE_VALUES = {"0", "false", "no", "off", "disabled"}
_NONE_VALUES = {"none", "null"}
_LOGGER = logging.getLogger(__name__)

EXIT_OK = 0
EXIT_FAILED = 1
EXIT_USAGE = 2
EXIT_INTERRUPTED = 130


def configure_logging(debug: bool = False, *, force: bool = False) -> None:
    """Configure logging; debug mode also mirrors records to stderr."""

    level = logging.DEBUG if debug else logging.INFO
    logging_utils.setup_logging(level, console=debug, force=force)
    _LOGGER.debug(
        "Logging configured (level=%s, file=%s)",
        logging.getLevelName(level),
        logging_utils.get_log_path(),
    )


# ----------------------------------------------------------------------
# Terminal adapters
# ----------------------------------------------------------------------


@dataclass(slots=True)
class ConsoleCallback:
    """Streams the answer to ``stdout`` and reports failures on ``stderr``."""

    stdout: TextIO = field(default_factory=lambda: sys.stdout)
    stderr: TextIO = field(default_factory=lambda: sys.stderr)
    _wrote_text: bool = False

    def on_text_delta(self, chunk: str) -> None:
        self.stdout.write(chunk)
        self.stdout.flush()
        self._wrote_text = True

    def on_complete(self, full_text: str) -> None:
        if self._wrote_text or full_text:
            self.stdout.write("\n")
            self.stdout.flush()

    def on_error(self, kind: ErrorKind, message: str) -> None:
        if self._wrote_text:
            self.stdout.write("\n")
            self.stdout.flush()
        self.stderr.write(f"Error ({kind.value}): {message}\n")
        self.stderr.flush()


class TerminalApproval:
    """Approval hook that asks on the controlling terminal."""

    def __init__(self, *, stdin: TextIO | None = None, stderr: TextIO | None = None) -> None:
        self._stdin = stdin or sys.stdin
        self._stderr = stderr or sys.stderr
        self._lock = asyncio.Lock()

    async def __call__(self, definition: ToolDefinition, arguments: Mapping[str, str]) -> bool:
        if not self._stdin.isatty():
            _LOGGER.warning("Cannot ask for approval of %s without a terminal; denying", definition.name)
            return False
        # Concurrent tool calls must not interleave their questions.
        async with self._lock:
            return await asyncio.to_thread(self._ask, definition, arguments)

    def _ask(self, definition: ToolDefinition, arguments: Mapping[str, str]) -> bool:
        preview = json.dumps(dict(arguments), ensure_ascii=False)
        if len(preview) > 400:
            preview = preview[:400] + "..."
        self._stderr.write(f"\nAllow {definition.name} {preview}? [y/N] ")
        self._stderr.flush()
        answer = self._stdin.readline()
        return answer.strip().lower() in {"y", "yes"}


# ----------------------------------------------------------------------
# Conversation
# ----------------------------------------------------------------------


def build_registry(settings: Settings, *, tools_enabled: bool = True) -> ToolRegistry:
    if not tools_enabled:
        return ToolRegistry()
    return build_default_registry(Path(settings.workspace_root))


async def run_conversation(
    settings: Settings,
    prompt: str,
    *,
    auto_approve: bool = False,
    tools_enabled: bool = True,
    client: AIClient | None = None,
    stdout: TextIO | None = None,
    stderr: TextIO | None = None,
) -> int:
    """Run one prompt to completion and return the process exit code."""

    registry = build_registry(settings, tools_enabled=tools_enabled)
    executor = ToolExecutor(
        registry,
        ExecutorConfig(
            default_timeout=settings.tool_timeout,
            log_arguments=settings.debug_logging,
            log_results=settings.debug_logging,
        ),
        approval_hook=None if auto_approve else TerminalApproval(stderr=stderr),
    )
    owns_client = client is None
    client = client or AIClient(settings.to_client_settings())
    orchestrator = ChatOrchestrator(
        client,
        executor,
        config=OrchestratorConfig(
            model=settings.model,
            temperature=settings.temperature,
            max_turns=settings.max_turns,
        ),
    )
    system_prompt = assemble_system_prompt(registry.list_tools(), settings.custom_instructions)
    messages = with_system_prompt([Message.user(prompt)], system_prompt)
    callback = ConsoleCallback(stdout=stdout or sys.stdout, stderr=stderr or sys.stderr)

    try:
        result = await orchestrator.run(messages, callback)
    finally:
        if owns_client:
            await client.aclose()

    _LOGGER.info(
        "Conversation finished: state=%s turns=%d",
        result.state.value,
        result.turns,
    )
    return EXIT_OK if result.succeeded else EXIT_FAILED


# ----------------------------------------------------------------------
# Entry point
# ----------------------------------------------------------------------


def main(argv: Sequence[str] | None = None) -> int:
    """Entry point invoked by the `codek` console script."""

    args = _parse_cli_args(argv)
    configure_logging(args.verbose)

    try:
        cli_overrides = _coerce_cli_overrides(args.overrides or [])
    except ValueError as exc:
        print(f"Invalid --set override: {exc}", file=sys.stderr)
        return EXIT_USAGE
    if args.workspace:
        cli_overrides["workspace_root"] = args.workspace
    if args.model:
        cli_overrides["model"] = args.model
    if args.verbose:
        cli_overrides["debug_logging"] = True

    settings = load_settings(overrides=cli_overrides or None)

    if args.dump_settings:
        _dump_settings(settings, overrides=cli_overrides)
        return EXIT_OK

    if settings.debug_logging and not args.verbose:
        configure_logging(True, force=True)

    prompt = _read_prompt(args.prompt, sys.stdin)
    if not prompt:
        print("No prompt given (pass it as arguments or on stdin).", file=sys.stderr)
        return EXIT_USAGE

    try:
        return asyncio.run(
            run_conversation(
                settings,
                prompt,
                auto_approve=args.yes,
                tools_enabled=not args.no_tools,
            )
        )
    except KeyboardInterrupt:
        print("\nInterrupted.", file=sys.stderr)
        return EXIT_INTERRUPTED


def _parse_cli_args(argv: Sequence[str] | None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        prog="codek",
        add_help=True,
        description="Ask an OpenAI-compatible model a question; it may read and edit files in the workspace.",
    )
    parser.add_argument("prompt", nargs="*", help="Prompt text; read from stdin when omitted.")
    parser.add_argument(
        "--dump-settings",
        action="store_true",
        help="Print the effective settings payload (with secrets redacted) and exit.",
    )
    parser.add_argument(
        "--set",
        dest="overrides",
        metavar="KEY=VALUE",
        action="append",
        default=[],
        help="Override a setting for this run (repeatable).",
    )
    parser.add_argument("--workspace", metavar="PATH", help="Directory the file tools are confined to.")
    parser.add_argument("--model", metavar="NAME", help="Model identifier to use.")
    parser.add_argument(
        "-y",
        "--yes",
        action="store_true",
        help="Run tools that need approval without asking.",
    )
    parser.add_argument("--no-tools", action="store_true", help="Do not offer any tools to the model.")
    parser.add_argument("-v", "--verbose", action="store_true", help="Enable debug logging on stderr.")
    return parser.parse_args(argv)


def _read_prompt(words: Sequence[str], stdin: TextIO) -> str:
    if words:
        return " ".join(words).strip()
    if stdin.isatty():
        return ""
    return stdin.read().strip()


def _coerce_cli_overrides(items: Sequence[str]) -> Dict[str, Any]:
    overrides: Dict[str, Any] = {}
    if not items:
        return overrides

    fields = Settings.__dataclass_fields__  # type: ignore[attr-defined]
    type_hints = get_type_hints(Settings)
    for entry in items:
        if "=" not in entry:
            raise ValueError(f"Override '{entry}' must use KEY=VALUE syntax.")
        key, raw_value = entry.split("=", 1)
        key = key.strip()
        if not key:
            raise ValueError("Override is missing a field name.")
        if key not in fields:
            raise ValueError(f"Unknown setting '{key}'.")
        annotation = type_hints.get(key, fields[key].type)
        overrides[key] = _coerce_value(annotation, raw_value.strip())
    return overrides


def _coerce_value(annotation: Any, raw_value: str) -> Any:
    normalized = raw_value.strip()
    if _is_optional(annotation) and normalized.lower() in _NONE_VALUES:
        return None
    target = _resolve_annotation(annotation)

    if target is str or target is Any:
        return normalized
    if target is bool:
        return _parse_bool(normalized)
    if target is int:
        return int(normalized, 10)
    if target is float:
        return float(normalized)
    if target is dict:
        try:
            payload = json.loads(normalized or "{}")
        except json.JSONDecodeError as exc:
            raise ValueError("Dict overrides must be valid JSON objects") from exc
        if not isinstance(payload, dict):
            raise ValueError("Dict overrides must be valid JSON objects")
        return payload
    return normalized


def _is_optional(annotation: Any) -> bool:
    return type(None) in get_args(annotation)


def _resolve_annotation(annotation: Any) -> Any:
    origin = get_origin(annotation)
    if origin is None:
        return annotation
    if origin in {list, dict}:
        return origin
    args = [arg for arg in get_args(annotation) if arg is not type(None)]
    if not args:
        return origin
    return args[0]


def _parse_bool(value: str) -> bool:
    lowered = value.strip().lower()
    if lowered in _TRUE_VALUES:
        return True
    if lowered in _FALSE_VALUES:
        return False
    raise ValueError(f"Cannot coerce '{value}' to a boolean.")


def _dump_settings(
    settings: Settings,
    *,
    overrides: Mapping[str, Any],
    stream: TextIO | None = None,
) -> None:
    destination = stream or sys.stdout
    metadata = {
        "cli_overrides": sorted(overrides.keys()),
        "environment_variables": active_env_overrides(),
    }
    output = {"settings": settings.redacted(), "meta": metadata}
    json.dump(output, destination, indent=2)
    destination.write("\n")
