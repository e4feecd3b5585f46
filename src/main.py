# src/main.py - v2
"""CLI entry point: submit, check, process, resubmit, cancel, failed.

Usage:
    docbatch submit <package> [options]
    docbatch check
    docbatch process [--repo-path PATH] [--skip-file-checks] [--max-files N] [--wait]
    docbatch resubmit <batch_id>
    docbatch cancel <batch_id>
    docbatch failed
"""

from __future__ import annotations

import argparse
import asyncio
import logging
import sys
import tempfile
from pathlib import Path

from docbatch.version import __version__

logger = logging.getLogger(__name__)


def main(argv: list[str] | None = None) -> int:
    """Main CLI entry point."""
    parser = _build_parser()
    args = parser.parse_args(argv)

    if not hasattr(args, "func"):
        parser.print_help()
        return 1

    try:
        from docbatch.config.settings import load_settings

        settings = load_settings(**_settings_overrides(args))
        _setup_logging(settings, args.verbose)
        if args.dry_run:
            with tempfile.TemporaryDirectory(prefix="docbatch-dry-run-") as tmp:
                settings = settings.model_copy(
                    update={"batch_provider": "mock", "batch_root": Path(tmp)}
                )
                return asyncio.run(args.func(args, settings))
        return asyncio.run(args.func(args, settings))
    except KeyboardInterrupt:
        # Remote jobs keep running; the next invocation picks them up
        logger.info("Interrupted by user, remote batches were not cancelled")
        return 130
    except Exception as exc:
        logger.error("Fatal error: %s", exc, exc_info=args.verbose)
        return 1


def _build_parser() -> argparse.ArgumentParser:
    """Build CLI argument parser."""
    parser = argparse.ArgumentParser(
        prog="docbatch",
        description=f"docbatch v{__version__} - batch documentation generation",
    )
    parser.add_argument(
        "--version", action="version", version=f"%(prog)s {__version__}",
    )
    parser.add_argument(
        "-v", "--verbose", action="store_true",
        help="Enable debug logging",
    )
    parser.add_argument(
        "--dry-run", action="store_true",
        help="Use the in-process mock backend and a throwaway registry; files are not modified",
    )
    parser.add_argument(
        "--batch-root", type=Path, default=None,
        help="Registry directory (default: BATCH_ROOT or ~/.docbatch/batch-data)",
    )

    subparsers = parser.add_subparsers(dest="command")

    # --- submit ---
    p_submit = subparsers.add_parser(
        "submit", help="Submit a package's source files as batch jobs",
    )
    p_submit.add_argument("package", type=Path, help="Package directory")
    p_submit.add_argument(
        "--batch-size", type=int, default=None,
        help="Files per batch job (default: BATCH_SIZE or 10)",
    )
    p_submit.add_argument(
        "--max-files", type=int, default=None,
        help="Submit at most N files, entry points first",
    )
    p_submit.set_defaults(func=_cmd_submit)

    # --- check ---
    p_check = subparsers.add_parser(
        "check", help="Show the remote status of every active batch",
    )
    p_check.set_defaults(func=_cmd_check)

    # --- process ---
    p_process = subparsers.add_parser(
        "process", help="Reconcile completed batches and quarantine failed ones",
    )
    p_process.add_argument(
        "--repo-path", default=None,
        help="Where packages live now: absolute path replaces the recorded "
        "package path, relative path is joined with the package name",
    )
    p_process.add_argument(
        "--skip-file-checks", action="store_true",
        help="Do not require target files to exist or be unchanged",
    )
    p_process.add_argument(
        "--max-files", type=int, default=0,
        help="Test mode: apply at most N files per batch, entry points first",
    )
    p_process.add_argument(
        "--wait", action="store_true",
        help="Keep polling until no active batch remains",
    )
    p_process.add_argument(
        "--interval", type=float, default=None,
        help="Seconds between passes with --wait (default: BATCH_POLL_INTERVAL_S)",
    )
    p_process.set_defaults(func=_cmd_process)

    # --- resubmit ---
    p_resubmit = subparsers.add_parser(
        "resubmit", help="Resubmit an active batch from its saved payload",
    )
    p_resubmit.add_argument("batch_id", help="Batch id to resubmit")
    p_resubmit.set_defaults(func=_cmd_resubmit)

    # --- cancel ---
    p_cancel = subparsers.add_parser(
        "cancel", help="Ask the remote API to cancel a batch",
    )
    p_cancel.add_argument("batch_id", help="Batch id to cancel")
    p_cancel.set_defaults(func=_cmd_cancel)

    # --- failed ---
    p_failed = subparsers.add_parser(
        "failed", help="List quarantined batches",
    )
    p_failed.set_defaults(func=_cmd_failed)

    return parser


def _settings_overrides(args: argparse.Namespace) -> dict[str, object]:
    overrides: dict[str, object] = {}
    if args.batch_root is not None:
        overrides["batch_root"] = args.batch_root
    if getattr(args, "batch_size", None):
        overrides["batch_size"] = args.batch_size
    if args.command == "submit" and getattr(args, "max_files", None) is not None:
        overrides["max_files_per_package"] = args.max_files
    if getattr(args, "skip_file_checks", False):
        overrides["writer_skip_file_checks"] = True
    return overrides


def _components(settings, dry_run: bool = False, **manager_kwargs):
    """Build registry, client, writer and manager from settings."""
    from docbatch.batch.manager import BatchLifecycleManager
    from docbatch.batch.registry import JsonBatchRegistry
    from docbatch.llm.client_factory import create_batch_client
    from docbatch.storage.local_doc_writer import LocalDocWriter

    registry = JsonBatchRegistry(
        settings.batch_root_path, archive_processed=settings.batch_archive_processed
    )
    client = create_batch_client(settings.batch_provider, settings=settings)
    writer = LocalDocWriter.from_settings(settings, dry_run=dry_run)
    manager = BatchLifecycleManager(registry, client, writer, settings, **manager_kwargs)
    return registry, client, manager


async def _cmd_submit(args: argparse.Namespace, settings) -> int:
    """Submit a package."""
    from docbatch.batch.submitter import BatchSubmitter
    from docbatch.source.filesystem_provider import FilesystemSourceProvider

    package: Path = args.package
    if not package.is_dir():
        logger.error("Not a directory: %s", package)
        return 1

    registry, client, manager = _components(settings, dry_run=args.dry_run)
    provider = FilesystemSourceProvider(package, settings)
    submitter = BatchSubmitter(client, registry, settings, source_provider=provider)
    jobs = await submitter.submit_package()

    print(f"\nSubmitted {len(jobs)} batch job(s) for {provider.package_path.name}:")
    for job in jobs:
        print(f"  {job.batch_id}  {len(job.items)} files")

    if args.dry_run and jobs:
        # The mock backend lives in this process only
        _print_pass(await manager.run_pass(), "Dry-run reconciliation")
    return 0


async def _cmd_check(args: argparse.Namespace, settings) -> int:
    """Status-only pass."""
    _, _, manager = _components(settings, dry_run=args.dry_run)
    report = await manager.check()
    _print_pass(report, "Batch status")
    return 0


async def _cmd_process(args: argparse.Namespace, settings) -> int:
    """Reconcile completed batches."""
    _, _, manager = _components(
        settings,
        dry_run=args.dry_run,
        repo_path=args.repo_path,
        max_files=args.max_files,
    )
    if args.wait:
        report = await manager.wait(interval_s=args.interval)
    else:
        report = await manager.run_pass()
    _print_pass(report, "Batch processing")
    return 1 if report.count_action("error") else 0


async def _cmd_resubmit(args: argparse.Namespace, settings) -> int:
    """Resubmit a batch from its persisted payload."""
    from docbatch.batch.submitter import BatchSubmitter

    registry, client, _ = _components(settings, dry_run=args.dry_run)
    job = registry.get(args.batch_id)
    if job is None:
        logger.error("No active batch %s", args.batch_id)
        return 1
    new_job = await BatchSubmitter(client, registry, settings).resubmit(job)
    print(f"\nResubmitted {args.batch_id} as {new_job.batch_id} ({len(new_job.items)} files)")
    return 0


async def _cmd_cancel(args: argparse.Namespace, settings) -> int:
    """Cancel a remote batch. The local record is kept until a pass resolves it."""
    _, client, _ = _components(settings, dry_run=args.dry_run)
    accepted = await client.cancel(args.batch_id)
    print(f"\nCancel {args.batch_id}: {'accepted' if accepted else 'refused'}")
    return 0 if accepted else 1


async def _cmd_failed(args: argparse.Namespace, settings) -> int:
    """List quarantined batches."""
    from docbatch.batch.registry import JsonBatchRegistry

    registry = JsonBatchRegistry(settings.batch_root_path)
    jobs = registry.list_quarantined()
    print(f"\nQuarantined batches: {len(jobs)}")
    for job in jobs:
        print(
            f"  {job.batch_id}  {job.package_name}  {len(job.items)} files  "
            f"{job.age().total_seconds() / 3600:.1f}h old"
        )
    return 0


def _print_pass(report, title: str) -> None:
    """Print a PassReport summary."""
    from docbatch.batch.models import JobState

    print(f"\n{title}:")
    print(f"  Total batches: {report.total}")
    for state in JobState:
        print(f"  {state.value.capitalize():<12} {report.count(state)}")
    print(f"  {'Unknown':<12} {report.count(None)}")
    if report.corrupt_records:
        print(f"  Corrupt records skipped: {len(report.corrupt_records)}")

    for job in report.jobs:
        state = job.state.value if job.state else "unknown"
        stale = " STALE" if job.is_stale else ""
        print(
            f"\n  {job.batch_id}  {job.package_name}  {job.item_count} files  "
            f"{job.age_hours:.1f}h  {state}{stale}  [{job.action}]"
        )
        if job.detail:
            print(f"    {job.detail}")
        if job.reconcile is not None:
            r = job.reconcile
            print(
                f"    applied {len(r.applied)}, failed {len(r.failed)}, "
                f"doc blocks added {r.blocks_added}"
            )
            for item in r.failed:
                print(f"    - {item.file_path}: {item.error_kind}: {item.detail}")


def _setup_logging(settings, verbose: bool) -> None:
    """Configure logging for CLI usage."""
    from docbatch.logging.logger import setup_logging

    setup_logging(
        level="DEBUG" if verbose else settings.log_level,
        log_format=settings.log_format,
        log_file=settings.log_file,
        rotation=settings.log_rotation,
        retention=settings.log_retention,
    )
    # Quiet noisy libraries
    logging.getLogger("httpx").setLevel(logging.WARNING)
    logging.getLogger("httpcore").setLevel(logging.WARNING)


if __name__ == "__main__":
    sys.exit(main())
