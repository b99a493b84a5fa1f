"""Main entry point: python -m twist_cracker"""

from __future__ import annotations

import argparse
import csv
import logging
import os
import sys
from datetime import datetime

from twist_cracker import __version__
from twist_cracker.analysis.metrics import SolveMetrics
from twist_cracker.core.analyzer import TwistAnalyzer
from twist_cracker.core.crt import combine, combine_strict, has_sufficient_fragments
from twist_cracker.core.curves import twist_curve
from twist_cracker.core.discrete_log import DiscreteLogSolver
from twist_cracker.core.ec_arith import scalar_multiply
from twist_cracker.core.key_recovery import normalize
from twist_cracker.exceptions import TwistCrackerError
from twist_cracker.utils.constants import REFERENCE_MODULI, REFERENCE_REMAINDERS
from twist_cracker.utils.types import (
    AnalysisConfig,
    AnalysisRequest,
    AnalysisResult,
    Congruence,
    Signature,
)


def parse_fragment(text: str) -> Congruence:
    """'modulus:remainder', each decimal or 0x-prefixed hex."""
    try:
        modulus, remainder = text.split(":")
        return Congruence(int(modulus, 0), int(remainder, 0))
    except ValueError as exc:
        raise argparse.ArgumentTypeError(f"bad fragment {text!r}: {exc}") from exc


def parse_moduli(text: str) -> tuple[int, ...]:
    try:
        return tuple(int(part, 0) for part in text.split(",") if part.strip())
    except ValueError as exc:
        raise argparse.ArgumentTypeError(f"bad moduli list {text!r}") from exc


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="twist-cracker",
        description="Invalid-curve analysis -- recover secp256k1 key fragments from twist points",
    )
    parser.add_argument("--version", action="version", version=f"%(prog)s {__version__}")
    parser.add_argument("-v", "--verbose", action="count", default=0, help="-v info, -vv debug")

    sub = parser.add_subparsers(dest="command")

    # crt
    crt = sub.add_parser("crt", help="Combine key fragments with the CRT")
    crt.add_argument(
        "--fragment", type=parse_fragment, action="append",
        help="modulus:remainder (repeatable); defaults to the eight-prime reference set",
    )
    crt.add_argument("--strict", action="store_true", help="Fail on non-coprime moduli")

    # solve
    solve = sub.add_parser("solve", help="Solve one twist subgroup discrete log for a known secret")
    solve.add_argument("--modulus", type=int, required=True, help="Prime dividing the twist order")
    solve.add_argument("--secret", type=lambda s: int(s, 0), required=True, help="Secret scalar")

    # analyze
    analyze = sub.add_parser("analyze", help="Analyze a public key for twist fragments")
    analyze.add_argument("--x", type=str, help="Public key x-coordinate (hex)")
    analyze.add_argument("--y", type=str, help="Public key y-coordinate (hex)")
    analyze.add_argument("--pubkey", type=str, help="SEC1 encoded public key (hex)")
    analyze.add_argument("--r", type=str, default="0", help="Signature r (hex)")
    analyze.add_argument("--s", type=str, default="0", help="Signature s (hex)")
    analyze.add_argument("--sighash", type=str, default="01", help="Sighash byte (hex)")
    analyze.add_argument("--txid", type=str, help="Transaction id, carried into the result")
    analyze.add_argument("--moduli", type=parse_moduli, help="Comma separated worklist")
    analyze.add_argument("--workers", type=int, default=None, help="Solver threads")
    analyze.add_argument("--timeout", type=float, default=None, help="Seconds before cancelling")
    analyze.add_argument("--csv", action="store_true", help="Export results CSV")
    analyze.add_argument(
        "--out-dir", type=str, default="~/Desktop", help="CSV directory (default ~/Desktop)",
    )

    return parser


def configure_logging(verbosity: int) -> None:
    level = logging.WARNING
    if verbosity == 1:
        level = logging.INFO
    elif verbosity >= 2:
        level = logging.DEBUG
    logging.basicConfig(level=level, format="%(asctime)s %(name)s %(levelname)s: %(message)s")


def run_crt(args: argparse.Namespace) -> None:
    """Combine fragments and report the candidate key."""
    fragments = args.fragment or [
        Congruence(m, r) for m, r in zip(REFERENCE_MODULI, REFERENCE_REMAINDERS)
    ]
    result = combine_strict(fragments) if args.strict else combine(fragments)

    print(f"Fragments: {len(fragments)} | used {len(result.used)} | dropped {len(result.dropped)}")
    for c in result.used:
        print(f"  key = {c.remainder} (mod {c.modulus})")
    print()
    print(f"  Value:      {result.value}")
    print(f"  Modulus:    {result.modulus} ({result.modulus.bit_length()} bits)")
    print(f"  Key hex:    {normalize(result.value)}")
    print(f"  Sufficient: {has_sufficient_fragments(result.used)}")


def run_solve(args: argparse.Namespace) -> None:
    """Put secret * G' on the twist and recover secret mod q from the projection."""
    twist = twist_curve()
    q = args.modulus
    if q < 2 or twist.n % q:
        raise SystemExit(f"{q} does not divide the twist order")

    cofactor = twist.generator_order // q
    base = scalar_multiply(cofactor, twist.generator, twist)
    target = scalar_multiply(args.secret, base, twist)

    solver = DiscreteLogSolver(twist)
    report = solver.solve_report(target, q, base=base)

    print(f"Modulus: {q} | Method: {report.method.value}")
    print(f"  Remainder: {report.remainder}")
    print(f"  Expected:  {args.secret % q}")
    print(f"  Steps:     {report.steps}")
    print(f"  Elapsed:   {report.elapsed:.3f} s")


def run_analyze(args: argparse.Namespace) -> None:
    """Full pipeline: public key -> classify -> subgroup solves -> fragments -> report."""
    if args.pubkey is None and (args.x is None or args.y is None):
        raise SystemExit("analyze needs --x and --y, or --pubkey")

    config = AnalysisConfig(moduli=args.moduli, max_workers=args.workers, timeout=args.timeout)
    request = AnalysisRequest(
        signature=Signature(r=args.r, s=args.s, sighash=args.sighash),
        x=args.x,
        y=args.y,
        public_key=args.pubkey,
        txid=args.txid,
    )
    result = TwistAnalyzer(config=config).analyze(request)
    report = SolveMetrics(result.solve_reports).full_report()

    print("=" * 50)
    print(" RESULTS")
    print("=" * 50)
    print(f"  Vulnerability:  {result.vulnerability_type.value}")
    print(f"  Status:         {result.status}")
    print(f"  {result.message}")
    for r in result.solve_reports:
        found = r.remainder if r.found else "-"
        print(f"  mod {r.modulus:>8}: {found!s:>8}  ({r.method.value}, {r.steps} steps)")
    if result.solve_reports:
        print(f"  Recovered bits: {report['recovered_bits']:.2f}")
        print(f"  Elapsed:        {report['total_elapsed']:.3f} s")
    if result.dropped_moduli:
        print(f"  Skipped moduli: {result.dropped_moduli}")
    if result.recovered_key is not None:
        print(f"  Key:            {result.recovered_key.hex}")
        print(f"  Verified:       {result.recovered_key.verified}")
    print("=" * 50)

    if args.csv:
        export_csv(result, report, args.out_dir)


def export_csv(result: AnalysisResult, report: dict, out_dir: str) -> str:
    """Write results to <out_dir>/twist_cracker_<timestamp>.csv and return the path."""
    directory = os.path.expanduser(out_dir)
    timestamp = datetime.now().strftime("%Y%m%d_%H%M%S")
    filepath = os.path.join(directory, f"twist_cracker_{timestamp}.csv")

    with open(filepath, "w", newline="") as f:
        writer = csv.writer(f)
        writer.writerow(["metric", "value"])
        writer.writerow(["vulnerability_type", result.vulnerability_type.value])
        writer.writerow(["status", result.status])
        if result.txid:
            writer.writerow(["txid", result.txid])
        for c in result.congruences:
            writer.writerow([f"mod_{c.modulus}", c.remainder])
        writer.writerow(["success_rate", report["success_rate"]])
        writer.writerow(["recovered_bits", report["recovered_bits"]])
        writer.writerow(["total_elapsed", report["total_elapsed"]])
        for k, v in report.get("step_stats", {}).items():
            writer.writerow([f"steps_{k}", v])
        if result.recovered_key is not None:
            writer.writerow(["key_hex", result.recovered_key.hex])
            writer.writerow(["key_verified", result.recovered_key.verified])

    print(f"Results exported to {filepath}")
    return filepath


def main(argv: list[str] | None = None) -> None:
    parser = build_parser()
    args = parser.parse_args(argv)
    configure_logging(args.verbose)

    try:
        if args.command == "crt":
            run_crt(args)
        elif args.command == "solve":
            run_solve(args)
        elif args.command == "analyze":
            run_analyze(args)
        else:
            parser.print_help()
    except TwistCrackerError as exc:
        print(f"error: {exc}", file=sys.stderr)
        raise SystemExit(1) from exc


if __name__ == "__main__":
    main()
