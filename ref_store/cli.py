import argparse
import logging
import sys

from ref_store.builder import StorageBuilder
from ref_store.errors import MalformedPayloadError, RetryCountExceeded
from ref_store.hosted import UrlHostedRepository
from ref_store.impl.git import GitVcs
from ref_store.retry import RetryPolicy
from ref_store.serialization import lines_deserializer, lines_serializer

logger = logging.getLogger("ref_store.cli")


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="ref-store", description="Shared item set stored in a git ref"
    )
    parser.add_argument(
        "--remote", required=True, help="Remote repository URL or path"
    )
    parser.add_argument("--ref", default="storage", help="Ref holding the set")
    parser.add_argument("--file", default="items.txt", help="Payload file name")
    parser.add_argument(
        "--work-dir", required=True, help="Local working copy owned by this process"
    )
    parser.add_argument(
        "--username", default=None, help="Username for http(s) remotes"
    )
    parser.add_argument(
        "--token-env",
        default=None,
        help="Environment variable holding an access token for http(s) remotes",
    )
    parser.add_argument("--author-name", default="ref-store")
    parser.add_argument("--author-email", default="ref-store@localhost")
    parser.add_argument("--message", default="Updated storage")
    parser.add_argument("--max-attempts", type=int, default=10)
    parser.add_argument(
        "--backoff-ms",
        type=float,
        default=0.0,
        help="Initial delay between contended attempts (default: no delay)",
    )
    verbosity = parser.add_mutually_exclusive_group()
    verbosity.add_argument("-v", "--verbose", action="count", default=0)
    verbosity.add_argument("-q", "--quiet", action="store_true")

    commands = parser.add_subparsers(dest="command", required=True)
    commands.add_parser("show", help="Print the current items, one per line")
    put = commands.add_parser("put", help="Add items to the set")
    put.add_argument("items", nargs="*", help="Items to add; read stdin if omitted")
    return parser


def configure_logging(verbose: int, quiet: bool) -> None:
    if quiet:
        level = logging.ERROR
    elif verbose >= 2:
        level = logging.DEBUG
    elif verbose == 1:
        level = logging.INFO
    else:
        level = logging.WARNING
    logging.basicConfig(
        level=level,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
        stream=sys.stderr,
    )


def main(argv: list[str] | None = None) -> int:
    args = build_parser().parse_args(argv)
    configure_logging(args.verbose, args.quiet)

    hosted = UrlHostedRepository(
        args.remote, username=args.username, token_env_var=args.token_env
    )
    policy = RetryPolicy(
        max_attempts=args.max_attempts, initial_delay_ms=args.backoff_ms
    )

    try:
        storage = (
            StorageBuilder[str](args.file)
            .serializer(lines_serializer)
            .deserializer(lines_deserializer)
            .vcs(GitVcs())
            .retry_policy(policy)
            .remote_repository(
                hosted, args.ref, args.author_name, args.author_email, args.message
            )
            .materialize(args.work_dir)
        )

        if args.command == "put":
            items = args.items or [
                line.strip() for line in sys.stdin if line.strip()
            ]
            storage.put(items)
            logger.info("Stored %d items", len(items))
        else:
            for item in sorted(storage.current()):
                print(item)
    except RetryCountExceeded as e:
        print(f"ref-store: {e}: {e.__cause__}", file=sys.stderr)
        return 1
    except MalformedPayloadError as e:
        print(f"ref-store: {e}", file=sys.stderr)
        return 2
    return 0


if __name__ == "__main__":
    sys.exit(main())
