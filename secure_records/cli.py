"""
Secure records command line.

Usage:
    secure-records generate-key
    secure-records benchmark [-n COUNT]
    secure-records serve [--host HOST] [--port PORT]

Or run directly:
    python -m secure_records.cli benchmark
"""

from __future__ import annotations

import argparse
import sys
import time
from typing import List, Optional

import uvicorn

from .api import create_app
from .config import Settings, configure_logging
from .envelope import decrypt_payload, encrypt_payload
from .errors import ConfigurationError
from .keys import MASTER_KEY_ENV, generate_master_key


def cmd_generate_key(args: argparse.Namespace) -> int:
    """Print a fresh master key in .env form."""
    key_hex = generate_master_key()
    print(f"Generated {MASTER_KEY_ENV}: {key_hex}")
    print(f"Set this in your .env file as: {MASTER_KEY_ENV}={key_hex}")
    return 0


def cmd_benchmark(args: argparse.Namespace) -> int:
    """Time encrypt/decrypt round trips under the configured master key."""
    print("=== Secure Records Benchmark ===\n")

    settings = Settings.from_env()
    provider = settings.key_provider()
    try:
        provider()
    except ConfigurationError as e:
        print(f"[ERROR] {e}")
        return 1

    count = args.count
    if count < 1:
        print("[ERROR] --count must be at least 1")
        return 2
    payload = {"hello": "world", "amount": 42, "memo": "x" * args.payload_size}
    print(f"Testing with {count} records ({args.payload_size} byte memo)\n")

    records = []
    encrypt_start = time.perf_counter()
    for i in range(count):
        records.append(encrypt_payload(f"party-{i}", payload, key_provider=provider))
        if (i + 1) % 250 == 0 or (i + 1) == count:
            print(f"  Progress: {i + 1}/{count}")
    encrypt_duration = time.perf_counter() - encrypt_start
    print(f"[OK] Encrypted {count} records")

    decrypt_start = time.perf_counter()
    for record in records:
        if decrypt_payload(record, key_provider=provider) != payload:
            print(f"[ERROR] Round trip mismatch for record {record.id}")
            return 1
    decrypt_duration = time.perf_counter() - decrypt_start
    print(f"[OK] Decrypted {count} records\n")

    print("+- Performance Summary ---------------------------------------------+")
    enc_rate = count / encrypt_duration
    dec_rate = count / decrypt_duration
    print(f"|  Encryption: {encrypt_duration * 1000:10.3f}ms | {enc_rate:12.2f} ops/sec")
    print(f"|  Decryption: {decrypt_duration * 1000:10.3f}ms | {dec_rate:12.2f} ops/sec")
    print("+-------------------------------------------------------------------+")
    print("\nTest Configuration:")
    print("  - Crypto: AES-256-GCM payload layer + AES-256-GCM DEK wrap")
    print("  - DEK: one-time 256-bit key per record")
    return 0


def cmd_serve(args: argparse.Namespace) -> int:
    """Run the HTTP API with uvicorn."""
    settings = Settings.from_env()
    configure_logging(settings.log_level)
    uvicorn.run(
        create_app(settings),
        host=args.host or settings.host,
        port=args.port or settings.port,
        log_level=settings.log_level.lower(),
    )
    return 0


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="secure-records",
        description="Envelope-encrypted JSON record store",
    )
    subparsers = parser.add_subparsers(dest="command", required=True)

    gen = subparsers.add_parser("generate-key", help="generate a new master key")
    gen.set_defaults(func=cmd_generate_key)

    bench = subparsers.add_parser("benchmark", help="time encrypt/decrypt round trips")
    bench.add_argument("-n", "--count", type=int, default=1000)
    bench.add_argument("--payload-size", type=int, default=256)
    bench.set_defaults(func=cmd_benchmark)

    serve = subparsers.add_parser("serve", help="run the HTTP API")
    serve.add_argument("--host")
    serve.add_argument("--port", type=int)
    serve.set_defaults(func=cmd_serve)

    return parser


def main(argv: Optional[List[str]] = None) -> None:
    """CLI entry point for the secure-records command."""
    args = build_parser().parse_args(argv)
    sys.exit(args.func(args))


if __name__ == "__main__":
    main()
