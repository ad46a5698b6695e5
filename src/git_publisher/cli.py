"""Command-line entry point: ``git-publisher``."""

import argparse
import asyncio
import json
import logging
import sys
from pathlib import Path

from dotenv import load_dotenv
from pydantic import ValidationError

from . import __version__
from .config import load_config
from .config_loader import discover_config_files, ensure_config
from .config_schema import UnifiedConfig
from .core.async_utils import init_semaphore
from .core.local import LocalDocumentStore
from .core.router import RepositoryRouter
from .errors import NotConfigured, PublisherError, format_error
from .logger import setup_logging
from .publish import (
    DirectoryNode,
    DirectoryTreeCache,
    PublicationCoordinator,
    PublishRecordStore,
    format_dashboard,
    format_tree,
    records_to_json,
)

logger = logging.getLogger(__name__)


def build_coordinator(
    config: UnifiedConfig, router: RepositoryRouter | None = None
) -> PublicationCoordinator:
    """Wire a coordinator from the effective configuration."""
    router = router or RepositoryRouter(config.targets)
    tree_cache = DirectoryTreeCache(
        router,
        roots=config.roots(),
        ttl=config.cache.ttl_seconds,
        probe_children=config.cache.probe_children,
    )
    return PublicationCoordinator(
        remote=router,
        store=PublishRecordStore(Path(config.state_dir)),
        policy=config.publish,
        active_target=config.resolve_active_target(),
        local=LocalDocumentStore(Path(config.vault_root)),
        tree_cache=tree_cache,
    )


def _find_node(
    nodes: list[DirectoryNode], path: str
) -> DirectoryNode | None:
    for node in nodes:
        if node.path == path:
            return node
        if path.startswith(node.path + "/"):
            return _find_node(node.children, path)
    return None


async def _expand_path(
    coordinator: PublicationCoordinator,
    nodes: list[DirectoryNode],
    path: str,
    target: str | None,
) -> None:
    """Expand every directory on the way down to *path*.

    *path* may be relative to the target's browse root or include it.
    """
    root = coordinator.tree_cache.root_for(
        target or coordinator.active_target or ""
    )
    relative = path.strip("/")
    if root and (relative == root or relative.startswith(root + "/")):
        relative = relative[len(root) :].strip("/")
    if not relative:
        return

    prefix = f"{root}/" if root else ""
    segments = relative.split("/")
    level = nodes
    for i in range(len(segments)):
        node = _find_node(level, prefix + "/".join(segments[: i + 1]))
        if node is None or not node.is_directory:
            logger.warning("No remote directory %s", path)
            return
        level = await coordinator.expand(node, target)


async def main(args: argparse.Namespace, config: UnifiedConfig) -> int:
    """Run one subcommand; returns the process exit code."""
    init_semaphore(config.max_parallel_requests)
    router = RepositoryRouter(config.targets)
    coordinator = build_coordinator(config, router)
    target = args.target

    match args.command:
        case "publish":
            if args.republish:
                record = await coordinator.republish(args.path, target)
            else:
                record = await coordinator.quick_publish(
                    args.path, target, args.dir
                )
            print(
                f"Published {record.local_path} -> {record.remote_path} "
                f"on {record.target}"
            )
        case "pull":
            if args.print:
                print(await coordinator.update_from_remote(args.path, target))
            else:
                await coordinator.pull_to_local(args.path, target)
                print(f"Updated {args.path} from remote")
        case "delete":
            record = await coordinator.delete_remote(args.path, target)
            if record is None:
                print(f"{args.path} is not published; nothing to delete")
            else:
                print(f"Deleted {record.remote_path} from {record.target}")
        case "status":
            state = await coordinator.state_of(args.path, target)
            print(state.value)
        case "tree":
            nodes = await coordinator.list_directories(target)
            for path in args.expand or []:
                await _expand_path(coordinator, nodes, path, target)
            print(format_tree(nodes))
        case "history":
            records = await coordinator.dashboard(args.limit)
            if args.json:
                print(json.dumps(records_to_json(records), indent=2))
            else:
                print(format_dashboard(records))
        case "check":
            name = target or coordinator.active_target
            if not name:
                raise NotConfigured("No publish target selected")
            repo = await router.validate_connection(name)
            print(f"Target {name}: connected to {repo}")
    return 0


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="git-publisher",
        description="Publish local documents to GitHub/GitLab repositories",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  # Write a starter config to .git_publisher/config.yml
  git-publisher init

  # Publish a document to the active target
  git-publisher publish notes/a.md

  # Publish into a chosen remote directory on another target
  git-publisher --target wiki publish notes/a.md --dir guide

  # Browse the remote tree, expanding one directory
  git-publisher tree --expand guide

  # Recent publishes as JSON
  git-publisher history --json

Tokens are read from GITHUB_TOKEN / GITLAB_TOKEN (or .env) when the
config file leaves them empty.
        """,
    )
    parser.add_argument(
        "--target",
        help="Target name (overrides GIT_PUBLISHER_TARGET and active_target)",
    )
    parser.add_argument(
        "--vault", help="Local document root (default: current directory)"
    )
    parser.add_argument(
        "--debug", action="store_true", help="Enable debug logging"
    )
    parser.add_argument("--log-file", help="Also write logs to this file")
    parser.add_argument(
        "--version",
        action="version",
        version=f"git-publisher version {__version__}",
    )

    sub = parser.add_subparsers(dest="command", required=True)

    sub.add_parser("init", help="Create a starter config file")

    p = sub.add_parser("publish", help="Publish a local document")
    p.add_argument("path", help="Document path relative to the vault")
    p.add_argument("--dir", help="Remote directory to publish into")
    p.add_argument(
        "--republish",
        action="store_true",
        help="Publish again to the previously used remote path",
    )

    p = sub.add_parser("pull", help="Update a local document from remote")
    p.add_argument("path")
    p.add_argument(
        "--print",
        action="store_true",
        help="Print the remote content instead of writing it",
    )

    p = sub.add_parser("delete", help="Delete a published document remotely")
    p.add_argument("path")

    p = sub.add_parser("status", help="Show a document's publication state")
    p.add_argument("path")

    p = sub.add_parser("tree", help="List the remote directory tree")
    p.add_argument(
        "--expand",
        action="append",
        metavar="PATH",
        help="Expand a remote directory (repeatable)",
    )

    p = sub.add_parser("history", help="Show recent publishes")
    p.add_argument("--limit", type=int, default=10)
    p.add_argument("--json", action="store_true", help="JSON output")

    sub.add_parser("check", help="Validate the target's credentials")
    return parser


def run(argv: list[str] | None = None) -> None:
    """Entry point that handles errors gracefully and parses CLI arguments."""
    args = _build_parser().parse_args(argv)

    # .env first so ${VAR} interpolation in YAML can use its values
    load_dotenv()

    if args.command == "init":
        setup_logging(debug=args.debug, log_file=args.log_file)
        path = ensure_config()
        print(f"Config file: {path}")
        return

    try:
        config = load_config(target=args.target, vault_root=args.vault)
    except (PublisherError, ValueError, ValidationError) as e:
        print(format_error(e), file=sys.stderr)
        sys.exit(1)

    setup_logging(
        debug=args.debug,
        log_file=args.log_file or config.logging.file,
        level=config.logging.level,
    )
    sources = discover_config_files()
    logger.debug(
        "Config sources: %s",
        ", ".join(str(p) for p in sources) or "defaults",
    )

    try:
        sys.exit(asyncio.run(main(args, config)))
    except (PublisherError, ValueError) as e:
        print(format_error(e), file=sys.stderr)
        sys.exit(1)
    except KeyboardInterrupt:
        print("Interrupted", file=sys.stderr)
        sys.exit(130)


if __name__ == "__main__":
    run()
