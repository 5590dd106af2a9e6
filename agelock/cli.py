#!/usr/bin/env python3
"""
agelock Command Line Interface

Usage:
    agelock read --file <file.age> [--hash <sri>] [--pure] [--repair]
    agelock import --file <file.age> [--hash <sri>] [--format json|nix]
    agelock resolve --file <file.age> [--hash <sri>]
    agelock hash --file <plaintext>
    agelock path --name <name> --hash <sri>
"""

import argparse
import dataclasses
import json
import sys

from .config import EvaluationMode, ResolverSettings, log_json, log_level
from .errors import AgeLockError, ConfigurationError
from .hashing import parse_hash, sha256_digest
from .logging_config import configure_logging
from .models import parse_request
from .primops import (
    IMPORT_AGE_DOC,
    READ_AGE_DOC,
    DocumentEvaluationError,
    get_document_evaluator,
    import_age,
    read_age,
)
from .resolver import AgeResolver
from .store import StoreError


def build_settings(args) -> ResolverSettings:
    """Environment settings, overridden by command line flags."""
    settings = ResolverSettings.from_env()
    changes = {}
    if getattr(args, "pure", False):
        changes["mode"] = EvaluationMode.PURE
    if getattr(args, "impure", False):
        changes["mode"] = EvaluationMode.IMPURE
    if getattr(args, "repair", False):
        changes["repair"] = True
    if getattr(args, "store", None):
        changes["store_type"] = args.store
    if getattr(args, "store_dir", None):
        changes["store_dir"] = args.store_dir
    if getattr(args, "age", None):
        changes["age_path"] = args.age
    return dataclasses.replace(settings, **changes)


def build_resolver(args) -> AgeResolver:
    settings = build_settings(args)
    return AgeResolver(store=settings.build_store(), settings=settings)


def request_attrs(args) -> dict:
    attrs = {"file": args.file}
    if args.hash is not None:
        attrs["hash"] = args.hash
    return attrs


def cmd_read(args):
    """Print decrypted content."""
    text = read_age(build_resolver(args), request_attrs(args))
    sys.stdout.flush()
    sys.stdout.buffer.write(text.encode("utf-8", errors="surrogateescape"))
    sys.stdout.buffer.flush()
    return 0


def cmd_import(args):
    """Print the evaluated document as JSON."""
    evaluator = get_document_evaluator(args.format)
    value = import_age(build_resolver(args), request_attrs(args), evaluator=evaluator)
    print(json.dumps(value, indent=2, sort_keys=True))
    return 0


def cmd_resolve(args):
    """Print the store path holding the decrypted content."""
    resolver = build_resolver(args)
    reference = parse_request(request_attrs(args), "resolveAge")
    result = resolver.resolve(reference)
    if args.json:
        print(json.dumps(result.to_dict(), indent=2))
        return 0 if result.ok() else 1
    print(result.unwrap().store_path)
    return 0


def cmd_hash(args):
    """Print the SRI SHA-256 of a plaintext file."""
    with open(args.file, "rb") as f:
        print(sha256_digest(f.read()).to_sri())
    return 0


def cmd_path(args):
    """Print the store path for a name and hash."""
    settings = build_settings(args)
    digest = parse_hash(args.hash)
    if digest is None:
        raise ConfigurationError("'hash' is required")
    print(settings.build_store().compute_path(args.name, digest))
    return 0


def add_resolution_args(p: argparse.ArgumentParser) -> None:
    p.add_argument("-f", "--file", required=True, help="Encrypted file")
    p.add_argument("--hash", help="Expected SRI SHA-256 of the plaintext")
    mode = p.add_mutually_exclusive_group()
    mode.add_argument("--pure", action="store_true", help="Pure evaluation mode (hash required)")
    mode.add_argument("--impure", action="store_true", help="Impure evaluation mode")
    p.add_argument("--repair", action="store_true", help="Repair a corrupted store entry")
    p.add_argument("--age", help="Path to the age binary")
    add_store_args(p)


def add_store_args(p: argparse.ArgumentParser) -> None:
    p.add_argument("--store", choices=["local", "nix"], help="Store backend")
    p.add_argument("--store-dir", help="Store directory")


def main(argv=None):
    parser = argparse.ArgumentParser(
        prog="agelock",
        description="Decrypt age files into a content-addressed store",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  agelock read -f secret.txt.age --impure      First run, prints the hash
  agelock read -f secret.txt.age --hash sha256-... --pure
  agelock import -f config.json.age --hash sha256-...
  agelock path -n secret.txt --hash sha256-...
        """
    )
    parser.add_argument("--log-level", help="Log level (default from AGELOCK_LOG_LEVEL)")
    parser.add_argument("--log-json", action="store_true", help="JSON log lines")

    subparsers = parser.add_subparsers(dest="command", help="Commands")

    read_parser = subparsers.add_parser(
        "read", help="Print decrypted content",
        description=READ_AGE_DOC, formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    add_resolution_args(read_parser)

    import_parser = subparsers.add_parser(
        "import", help="Evaluate decrypted document",
        description=IMPORT_AGE_DOC, formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    add_resolution_args(import_parser)
    import_parser.add_argument("--format", choices=["json", "nix"], default="json", help="Document format")

    resolve_parser = subparsers.add_parser("resolve", help="Print store path of decrypted content")
    add_resolution_args(resolve_parser)
    resolve_parser.add_argument("--json", action="store_true", help="Print the full result as JSON")

    hash_parser = subparsers.add_parser("hash", help="Hash a plaintext file")
    hash_parser.add_argument("-f", "--file", required=True, help="Plaintext file")

    path_parser = subparsers.add_parser("path", help="Compute a store path")
    path_parser.add_argument("-n", "--name", required=True, help="Store name")
    path_parser.add_argument("--hash", required=True, help="SRI SHA-256 of the content")
    add_store_args(path_parser)

    args = parser.parse_args(argv)

    configure_logging(level=args.log_level or log_level(), json_format=args.log_json or log_json())

    commands = {
        "read": cmd_read,
        "import": cmd_import,
        "resolve": cmd_resolve,
        "hash": cmd_hash,
        "path": cmd_path,
    }
    if args.command not in commands:
        parser.print_help()
        return 2

    try:
        return commands[args.command](args)
    except (AgeLockError, DocumentEvaluationError, StoreError, OSError) as e:
        print(f"error: {e}", file=sys.stderr)
        return 1


if __name__ == "__main__":
    sys.exit(main())
