"""
Command-line interface for the MISMO conformance pipeline.

Usage:
    python -m mismo_conformance.cli.conformance_cli export --deal-reference <ref> [options]
    python -m mismo_conformance.cli.conformance_cli import --input <file.xml> [options]
    python -m mismo_conformance.cli.conformance_cli validate --input <file.xml> [--pack <pack_id>]
    python -m mismo_conformance.cli.conformance_cli packs
    python -m mismo_conformance.cli.conformance_cli hash --input <file.xml> [--expected <hash>]
"""

import argparse
import json
import sys
from pathlib import Path

from dotenv import load_dotenv

from mismo_conformance.settings import PipelineSettings
from mismo_conformance.core.models import ExportRequest, ImportRequest, RunStatus
from mismo_conformance.core.models.pipeline_run import SUBMITTABLE
from mismo_conformance.core.schema import SchemaPackRegistry, SchemaPackValidator
from mismo_conformance.errors import ConformanceError
from mismo_conformance.observability.logger import get_logger, reconfigure_loggers
from mismo_conformance.pipeline import ExportPipeline, ImportPipeline
from mismo_conformance.reporting.conformance import summarize, to_json
from mismo_conformance.storage.entity_store import JsonFileEntityStore
from mismo_conformance.storage.run_store import InMemoryRunStore, PostgresRunStore
from mismo_conformance.utils.hashing import content_hash, verify

logger = get_logger(__name__)

SUCCESS_STATUSES = SUBMITTABLE | {RunStatus.IMPORTED, RunStatus.IMPORTED_RAW_ONLY}


def load_registry(settings: PipelineSettings) -> SchemaPackRegistry:
    return SchemaPackRegistry.from_yaml(settings.schema_packs_path, default_pack_id=settings.default_pack)


def read_input(path: str) -> bytes:
    input_path = Path(path)
    if not input_path.exists():
        raise ConformanceError(f"Input file not found: {path}")
    return input_path.read_bytes()


def open_run_store(args):
    """
    Create the run store selected on the command line.

    Returns:
        (run_store, pool) where pool is None for the in-memory store
    """
    if args.store == "memory":
        return InMemoryRunStore(), None

    from mismo_conformance.storage.connection import DatabaseConnectionPool

    pool = DatabaseConnectionPool(
        host=args.db_host,
        port=args.db_port,
        database=args.db_name,
        user=args.db_user,
        password=args.db_password,
    )
    pool.open()
    return PostgresRunStore(pool), pool


def write_report(report, path: str | None) -> None:
    if not path:
        return
    with open(path, "w") as f:
        json.dump(to_json(report), f, indent=2)
    logger.info(f"Conformance report written to {path}")


def print_result(status: RunStatus, report, **extra) -> None:
    output = {"run_status": status.value, **extra, **summarize(report)}
    print(json.dumps(output, indent=2, default=str))


def export_command(args, settings: PipelineSettings) -> int:
    """
    Export a deal from the deals directory to a MISMO document.

    Args:
        args: Command line arguments
        settings: Pipeline settings

    Returns:
        Process exit code
    """
    logger.info(f"Exporting deal: {args.deal_reference}")

    run_store, pool = open_run_store(args)
    pipeline = ExportPipeline(
        load_registry(settings),
        run_store,
        JsonFileEntityStore(args.deals_dir),
        settings=settings,
    )

    try:
        result = pipeline.run(
            ExportRequest(
                deal_reference=args.deal_reference,
                pack_id=args.pack,
                skip_preflight=args.skip_preflight,
            )
        )

        if result.xml_bytes is not None and args.output:
            Path(args.output).write_bytes(result.xml_bytes)
            logger.info(f"Document written to {args.output}")

        write_report(result.conformance_report, args.report)
        print_result(result.status, result.conformance_report, output=args.output if result.xml_bytes else None)
        return 0 if result.status in SUCCESS_STATUSES else 1

    finally:
        pipeline.close()
        if pool is not None:
            pool.close()


def import_command(args, settings: PipelineSettings) -> int:
    """
    Import a MISMO document into the deals directory.

    Args:
        args: Command line arguments
        settings: Pipeline settings

    Returns:
        Process exit code
    """
    logger.info(f"Importing document: {args.input}")

    xml_bytes = read_input(args.input)
    run_store, pool = open_run_store(args)
    pipeline = ImportPipeline(
        load_registry(settings),
        run_store,
        JsonFileEntityStore(args.deals_dir),
        settings=settings,
    )

    try:
        result = pipeline.run(
            ImportRequest(xml_bytes=xml_bytes, pack_id=args.pack, raw_only_mode=args.raw_only)
        )

        write_report(result.conformance_report, args.report)
        print_result(result.status, result.conformance_report, created_deal_reference=result.created_deal_reference)
        return 0 if result.status in SUCCESS_STATUSES else 1

    finally:
        pipeline.close()
        if pool is not None:
            pool.close()


def validate_command(args, settings: PipelineSettings) -> int:
    """Validate a document against a schema pack without running a pipeline."""
    xml_bytes = read_input(args.input)
    registry = load_registry(settings)
    pack = registry.resolve(args.pack) if args.pack else registry.resolve(registry.detect(xml_bytes))

    report = SchemaPackValidator().validate(xml_bytes, pack)
    output = {
        "pack_id": pack.pack_id,
        "profile": pack.profile.value,
        "status": report.status.value,
        "summary": report.summary,
        "findings": [f.model_dump(mode="json") for f in report.findings],
    }
    print(json.dumps(output, indent=2))
    return 1 if report.failed else 0


def packs_command(args, settings: PipelineSettings) -> int:
    """List the registered schema packs."""
    registry = load_registry(settings)

    print(f"\n{'=' * 80}")
    print("SCHEMA PACKS")
    print(f"{'=' * 80}\n")
    print(f"{'Pack ID':<36} {'Version':<8} {'Build':<10} {'Profile':<10} {'Default'}")
    print(f"{'-' * 80}")

    for pack in registry.list_packs():
        default_mark = "*" if pack.pack_id == registry.default_pack_id else " "
        print(
            f"{pack.pack_id:<36} {pack.mismo_version:<8} {pack.build:<10} "
            f"{pack.profile.value:<10} {default_mark}"
        )

    print(f"\n{'=' * 80}\n")
    return 0


def hash_command(args, settings: PipelineSettings) -> int:
    """Print the content hash of a file, or check it against an expected hash."""
    xml_bytes = read_input(args.input)

    if args.expected:
        matches = verify(xml_bytes, args.expected)
        print("match" if matches else f"mismatch: {content_hash(xml_bytes)}")
        return 0 if matches else 1

    print(content_hash(xml_bytes))
    return 0


COMMANDS = {
    "export": export_command,
    "import": import_command,
    "validate": validate_command,
    "packs": packs_command,
    "hash": hash_command,
}


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="mismo-conformance",
        description="MISMO 3.4 conformance pipeline",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  # Export a deal stored as deals/DEAL-001.json
  mismo-conformance export --deal-reference DEAL-001 --output DEAL-001.xml

  # Export against the strict DU/ULAD pack and keep the full report
  mismo-conformance export --deal-reference DEAL-001 \\
      --pack PACK_B_DU_ULAD_STRICT_34_B324 --report report.json

  # Import a document, detecting its pack from the declared LDD
  mismo-conformance import --input inbound.xml

  # Quarantine an inbound document without mapping it
  mismo-conformance import --input inbound.xml --raw-only

  # Check a document against a pack
  mismo-conformance validate --input inbound.xml --pack PACK_A_GENERIC_MISMO_34_B324
        """
    )

    parser.add_argument(
        "--schema-packs",
        help="Path to schema packs YAML file (default: bundled packs)"
    )
    parser.add_argument(
        "--preflight-rules",
        help="Path to preflight rules YAML file (default: bundled rules)"
    )
    parser.add_argument(
        "--log-level",
        choices=["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"],
        help="Log level (default: LOG_LEVEL or INFO)"
    )
    parser.add_argument(
        "--env-file",
        help="Load environment variables from this file before running"
    )

    subparsers = parser.add_subparsers(dest="command", help="Available commands")

    # Run store and entity store options shared by export and import
    run_options = argparse.ArgumentParser(add_help=False)
    run_options.add_argument(
        "--deals-dir",
        default="deals",
        help="Directory holding canonical deals as JSON (default: deals)"
    )
    run_options.add_argument(
        "--pack",
        help="Schema pack ID (default: configured default pack, or detected on import)"
    )
    run_options.add_argument(
        "--report",
        help="Write the full conformance report as JSON to this path"
    )
    run_options.add_argument(
        "--store",
        default="memory",
        choices=["memory", "postgres"],
        help="Where runs and reports are recorded (default: memory)"
    )
    run_options.add_argument("--db-host", help="Database host (default: DB_HOST)")
    run_options.add_argument("--db-port", type=int, help="Database port (default: DB_PORT)")
    run_options.add_argument("--db-name", help="Database name (default: DB_NAME)")
    run_options.add_argument("--db-user", help="Database user (default: DB_USER)")
    run_options.add_argument("--db-password", help="Database password (default: DB_PASSWORD)")

    # export command
    export_parser = subparsers.add_parser(
        "export",
        parents=[run_options],
        help="Export a canonical deal to a MISMO document"
    )
    export_parser.add_argument(
        "--deal-reference",
        required=True,
        help="Reference of the deal to export"
    )
    export_parser.add_argument(
        "--output",
        help="Write the document to this path when the export completes"
    )
    export_parser.add_argument(
        "--skip-preflight",
        action="store_true",
        help="Generate the document even if preflight validation fails"
    )

    # import command
    import_parser = subparsers.add_parser(
        "import",
        parents=[run_options],
        help="Import a MISMO document into a canonical deal"
    )
    import_parser.add_argument(
        "--input",
        required=True,
        help="Path to the MISMO document"
    )
    import_parser.add_argument(
        "--raw-only",
        action="store_true",
        help="Store the raw document without mapping it"
    )

    # validate command
    validate_parser = subparsers.add_parser(
        "validate",
        help="Validate a document against a schema pack"
    )
    validate_parser.add_argument(
        "--input",
        required=True,
        help="Path to the MISMO document"
    )
    validate_parser.add_argument(
        "--pack",
        help="Schema pack ID (default: detected from the document)"
    )

    # packs command
    subparsers.add_parser(
        "packs",
        help="List registered schema packs"
    )

    # hash command
    hash_parser = subparsers.add_parser(
        "hash",
        help="Compute the content hash of a document"
    )
    hash_parser.add_argument(
        "--input",
        required=True,
        help="Path to the document"
    )
    hash_parser.add_argument(
        "--expected",
        help="Exit with status 1 unless the document has this hash"
    )

    return parser


def main(argv: list[str] | None = None):
    """Main CLI entry point."""
    parser = build_parser()
    args = parser.parse_args(argv)

    if not args.command:
        parser.print_help()
        sys.exit(1)

    if args.env_file:
        load_dotenv(args.env_file, override=True)
    else:
        load_dotenv()

    settings = PipelineSettings.from_env()
    updates = {
        "schema_packs_path": args.schema_packs,
        "preflight_rules_path": args.preflight_rules,
        "log_level": args.log_level,
    }
    settings = settings.model_copy(update={k: v for k, v in updates.items() if v})
    reconfigure_loggers("mismo_conformance", level=settings.log_level, format_type=settings.log_format)

    try:
        exit_code = COMMANDS[args.command](args, settings)

    except ConformanceError as e:
        logger.error(f"{args.command} failed: {e}")
        print(f"\nError: {e}", file=sys.stderr)
        sys.exit(1)

    except KeyboardInterrupt:
        print("\n\nInterrupted by user", file=sys.stderr)
        sys.exit(130)

    sys.exit(exit_code)


if __name__ == "__main__":
    main()
