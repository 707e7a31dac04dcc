import argparse
import sys

from dotenv import load_dotenv

from .checkpoint import CheckpointFile
from .config import load_settings
from .errors import MissingCredential
from .log import setup_logging
from .runner import broadcast, build_store, build_validator, perform_scan, run_continuous, validate_stored
from .webhook import alert_message, text_message


def write_to_output(message):
    print(message)


def parse_args(argv=None):
    p = argparse.ArgumentParser(
        prog="hookscan",
        description="hookscan: find exposed Discord webhooks on GitHub",
        formatter_class=argparse.ArgumentDefaultsHelpFormatter,
    )
    p.add_argument("--data-dir", help="Directory holding webhook chunks and scan state")
    p.add_argument("--pages", type=int, help="Max search pages per query")
    p.add_argument("--no-validate", action="store_true", help="Store webhooks without probing them")
    p.add_argument("--log-level", help="debug, info, warning or error")
    p.add_argument("--env-file", default=".env", help="dotenv file to read")

    sub = p.add_subparsers(dest="command", required=True)
    sub.add_parser("scan", help="Perform a single scan")
    watch = sub.add_parser("watch", help="Scan continuously, saving incrementally")
    watch.add_argument("--cycles", type=int, help="Stop after this many scans")
    sub.add_parser("chunks", help="List available chunks")
    sub.add_parser("count", help="Count stored webhooks")
    validate = sub.add_parser("validate", help="Probe every stored webhook")
    validate.add_argument("--prune", action="store_true", help="Remove invalid webhooks afterwards")
    notify = sub.add_parser("notify", help="Send a message to stored webhooks")
    notify.add_argument("--chunk", type=int, help="Only webhooks from this chunk")
    notify.add_argument("--message", help="Plain message content (default: exposure alert)")
    sub.add_parser("reset", help="Reset scan state")
    sub.add_parser("datadir", help="Show data directory")
    return p.parse_args(argv)


def main(argv=None):
    args = parse_args(argv)
    load_dotenv(args.env_file)
    try:
        settings = load_settings(dotenv_path=None)
    except ValueError as e:
        write_to_output(f"[!] {e}")
        return 1
    settings = settings.with_overrides(
        data_dir=args.data_dir,
        pages_per_scan=args.pages,
        validate_before_saving=False if args.no_validate else None,
        log_level=args.log_level,
    )
    logger = setup_logging(settings.log_level, settings.log_file, settings.log_max_bytes, settings.log_max_files)
    store = build_store(settings, logger)

    try:
        if args.command == "scan":
            result = perform_scan(settings, continuous=False, logger=logger)
            write_to_output(f"[*] Scan found {len(result.found)} webhooks ({result.invalid} invalid skipped)")
        elif args.command == "watch":
            write_to_output("[*] Starting continuous scanning. Press Ctrl+C to stop.")
            run_continuous(settings, logger=logger, cycles=args.cycles)
        elif args.command == "chunks":
            ids = store.list_chunk_ids()
            write_to_output(f"Available chunks: {', '.join(map(str, ids))}" if ids else "No chunks available.")
        elif args.command == "count":
            write_to_output(f"Total webhooks: {store.count()}")
            write_to_output(f"Webhooks are stored in {store.data_dir.resolve()}")
        elif args.command == "validate":
            validator = build_validator(settings, logger)
            valid, invalid = validate_stored(
                store, validator, prune=args.prune,
                progress=lambda done, total: write_to_output(f"Progress: {done}/{total}"),
            )
            write_to_output(f"Validation complete: {len(valid)} valid, {len(invalid)} invalid webhooks.")
            if args.prune and invalid:
                write_to_output(f"Removed {len(invalid)} invalid webhooks. {len(valid)} valid webhooks remain.")
        elif args.command == "notify":
            if args.chunk is not None and args.chunk not in store.list_chunk_ids():
                write_to_output("Invalid chunk number.")
                return 1
            message = text_message(args.message) if args.message else alert_message(settings.alert_embed)
            sent, total = broadcast(store, build_validator(settings, logger), message, chunk=args.chunk)
            write_to_output(f"Message sent to {sent}/{total} webhooks.")
        elif args.command == "reset":
            CheckpointFile(settings.checkpoint_path, logger).reset()
            write_to_output("Scan state has been reset. Next scan will start fresh.")
        elif args.command == "datadir":
            write_to_output(f"Data directory: {store.data_dir.resolve()}")
    except MissingCredential as e:
        write_to_output(f"[!] {e}")
        return 1
    except KeyboardInterrupt:
        write_to_output("\nExiting hookscan...")
        return 130
    return 0


if __name__ == "__main__":
    sys.exit(main())
