#!/usr/bin/env python3
"""
Stamp Gateway Command Line Interface

Usage:
    stampgate serve [--host <host>] [--port <port>]
    stampgate hash --file <file> [--json]
    stampgate stamp --hash <hash> --entity <hash> --doc-type <n> --state <n>
    stampgate verify --hash <hash>
    stampgate get --hash <hash>

The ledger commands use the same environment variables as the server.
"""

import argparse
import json
import sys

from .errors import GatewayError, LedgerError

EXIT_OK = 0
EXIT_REJECTED = 1
EXIT_LEDGER = 2


def _print(data: dict):
    print(json.dumps(data, indent=2))


def _components(env=None):
    from .config import GatewayConfig
    from .gas import GasBudgeter
    from .ledger import build_ledger_client
    from .reader import RecordReader
    from .submitter import TransactionSubmitter

    config = GatewayConfig.from_env(env)
    ledger = build_ledger_client(config)
    submitter = TransactionSubmitter(
        ledger,
        GasBudgeter(config.gas_mode, config.fixed_gas_limit),
        config.allow_duplicate_writes,
    )
    return submitter, RecordReader(ledger)


def _run(operation) -> int:
    try:
        _print(operation())
    except LedgerError as e:
        _print(e.to_dict())
        return EXIT_LEDGER
    except GatewayError as e:
        _print(e.to_dict())
        return EXIT_REJECTED
    return EXIT_OK


def cmd_serve(args):
    """Run the HTTP gateway."""
    import uvicorn
    from .config import GatewayConfig
    from .logging_config import configure_logging
    from .main import create_app

    config = GatewayConfig.from_env()
    configure_logging(config.log_level, config.log_json, config.log_file or None)
    uvicorn.run(create_app(config), host=args.host, port=args.port, log_level=config.log_level.lower())
    return EXIT_OK


def cmd_hash(args):
    """Compute the fingerprint of a file."""
    from .util import fingerprint_file, fingerprint_json

    if args.json:
        with open(args.file, "r", encoding="utf-8") as f:
            print(fingerprint_json(json.load(f)))
    else:
        print(fingerprint_file(args.file))
    return EXIT_OK


def cmd_stamp(args):
    submitter, _ = _components()
    return _run(lambda: submitter.stamp(args.hash, args.entity, args.doc_type, args.state).to_dict())


def cmd_verify(args):
    _, reader = _components()
    return _run(lambda: {"ok": True, "exists": reader.verify(args.hash)})


def cmd_get(args):
    _, reader = _components()
    return _run(lambda: {"ok": True, **reader.get_record(args.hash).to_dict()})


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="stampgate",
        description="Document stamp gateway CLI",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  stampgate serve --port 8080
  stampgate hash -f contract.pdf
  stampgate stamp --hash 0x11...11 --entity 0x22...22 --doc-type 1 --state 0
  stampgate get --hash 0x11...11
        """
    )

    subparsers = parser.add_subparsers(dest="command", help="Commands")

    serve_parser = subparsers.add_parser("serve", help="Run the HTTP gateway")
    serve_parser.add_argument("--host", default="0.0.0.0", help="Bind address")
    serve_parser.add_argument("--port", type=int, default=8000, help="Bind port")

    hash_parser = subparsers.add_parser("hash", help="Compute a document fingerprint")
    hash_parser.add_argument("-f", "--file", required=True, help="File to fingerprint")
    hash_parser.add_argument("--json", action="store_true", help="Fingerprint canonical JSON instead of raw bytes")

    stamp_parser = subparsers.add_parser("stamp", help="Stamp a fingerprint on the ledger")
    stamp_parser.add_argument("--hash", required=True, help="Document fingerprint (0x + 64 hex)")
    stamp_parser.add_argument("--entity", required=True, help="Entity identifier (0x + 64 hex)")
    stamp_parser.add_argument("--doc-type", type=int, required=True, help="Document type")
    stamp_parser.add_argument("--state", type=int, required=True, help="Record state")

    verify_parser = subparsers.add_parser("verify", help="Check whether a fingerprint was stamped")
    verify_parser.add_argument("--hash", required=True, help="Document fingerprint")

    get_parser = subparsers.add_parser("get", help="Show the recorded metadata of a fingerprint")
    get_parser.add_argument("--hash", required=True, help="Document fingerprint")

    return parser


COMMANDS = {
    "serve": cmd_serve,
    "hash": cmd_hash,
    "stamp": cmd_stamp,
    "verify": cmd_verify,
    "get": cmd_get,
}


def main(argv=None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)

    command = COMMANDS.get(args.command)
    if command is None:
        parser.print_help()
        return EXIT_REJECTED
    return command(args)


if __name__ == "__main__":
    sys.exit(main())
