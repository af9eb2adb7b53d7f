"""
Command-line interface for inspecting workflow checkpoints.

Usage:
    mcp-workflow list
    mcp-workflow show <thread_id>
    mcp-workflow reset <thread_id>
    mcp-workflow prune --max-age-days 7
    mcp-workflow info

All commands accept --project-path (defaults to $PROJECT_PATH, then home).
"""

import argparse
import asyncio
import json
import sys

from mcp_workflow.config import WorkflowConfig
from mcp_workflow.errors import PersistenceError
from mcp_workflow.observability import configure_logging
from mcp_workflow.storage.checkpoint_store import CheckpointStore


def _store(args: argparse.Namespace) -> CheckpointStore:
    config = WorkflowConfig.load(args.project_path)
    return CheckpointStore(config.well_known_directory.workflow_state_dir)


def cmd_list(args: argparse.Namespace) -> int:
    summaries = asyncio.run(_store(args).list_threads())
    if args.json:
        print(json.dumps([s.model_dump(mode="json") for s in summaries], indent=2))
        return 0
    if not summaries:
        print("No workflow checkpoints found.")
        return 0
    for s in summaries:
        waiting = f" waiting on {s.pending_tool}" if s.pending_tool else ""
        print(f"{s.thread_id}  {s.status.value:<9}  v{s.version}  {s.updated_at}{waiting}")
    return 0


def cmd_show(args: argparse.Namespace) -> int:
    try:
        checkpoint = asyncio.run(_store(args).read(args.thread_id))
    except PersistenceError as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1
    if checkpoint is None:
        print(f"No checkpoint for thread '{args.thread_id}'", file=sys.stderr)
        return 1
    print(checkpoint.model_dump_json(indent=2))
    return 0


def cmd_reset(args: argparse.Namespace) -> int:
    try:
        deleted = asyncio.run(_store(args).delete(args.thread_id))
    except PersistenceError as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1
    if not deleted:
        print(f"No checkpoint for thread '{args.thread_id}'", file=sys.stderr)
        return 1
    print(f"Deleted checkpoint for thread '{args.thread_id}'")
    return 0


def cmd_prune(args: argparse.Namespace) -> int:
    max_age = args.max_age_days
    if max_age is None:
        max_age = WorkflowConfig.load(args.project_path).checkpoint_max_age_days
    count = asyncio.run(_store(args).prune(max_age_days=max_age))
    print(f"Pruned {count} checkpoint(s) older than {max_age} day(s)")
    return 0


def cmd_info(args: argparse.Namespace) -> int:
    config = WorkflowConfig.load(args.project_path)
    info = config.well_known_directory.info()
    info["environment"] = config.environment
    info["checkpoint_max_age_days"] = config.checkpoint_max_age_days
    info["keep_terminal_checkpoints"] = config.keep_terminal_checkpoints
    print(json.dumps(info, indent=2))
    return 0


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="mcp-workflow",
        description="Inspect and maintain checkpointed MCP workflows",
    )
    parser.add_argument(
        "--project-path",
        default=None,
        help="Project whose .mcp-workflow directory to use (default: $PROJECT_PATH or home)",
    )
    parser.add_argument("--log-level", default="WARNING", help="Log level for diagnostics")

    subparsers = parser.add_subparsers(dest="command", required=True)

    list_parser = subparsers.add_parser("list", help="List workflow threads with checkpoints")
    list_parser.add_argument("--json", action="store_true", help="Output as JSON")
    list_parser.set_defaults(func=cmd_list)

    show_parser = subparsers.add_parser("show", help="Print a thread's checkpoint")
    show_parser.add_argument("thread_id", help="Workflow thread id")
    show_parser.set_defaults(func=cmd_show)

    reset_parser = subparsers.add_parser("reset", help="Delete a thread's checkpoint")
    reset_parser.add_argument("thread_id", help="Workflow thread id")
    reset_parser.set_defaults(func=cmd_reset)

    prune_parser = subparsers.add_parser("prune", help="Delete stale checkpoints")
    prune_parser.add_argument(
        "--max-age-days",
        type=int,
        default=None,
        help="Delete checkpoints not updated for this many days (default: from configuration)",
    )
    prune_parser.set_defaults(func=cmd_prune)

    info_parser = subparsers.add_parser("info", help="Show workflow directory and configuration")
    info_parser.set_defaults(func=cmd_info)

    return parser


def main(argv: list[str] | None = None) -> None:
    parser = build_parser()
    args = parser.parse_args(argv)
    configure_logging(level=args.log_level, format="human")

    if hasattr(args, "func"):
        sys.exit(args.func(args))


if __name__ == "__main__":
    main()
