"""
GeoStamp CLI — Local Interface for Claim Assessment.

Commands:
    geostamp assess [PROOF]          — Assess a claim against its stamps
    geostamp explain [PROOF]         — Show the score breakdown for a proof
    geostamp verify-stamp STAMP      — Run one stamp's plugin verification
    geostamp plugins                 — List registered plugins
    geostamp decode SCHEMA HEX       — Decode attestation bytes

Without a proof file the built-in sample proof is used. Scoring weights
and limits come from GEOSTAMP_* environment variables; the CLI cannot
change them.
"""

from __future__ import annotations

import argparse
import json
import sys
from typing import Any, Optional

from ..attestation.codec import decode_attestation
from ..attestation.schemas import SchemaId
from ..config import get_settings
from ..credibility.scorer import generate_explanation
from ..domain import GeoStampError, PluginNotFound, UnverifiableAttestation
from ..engine import Assessment, AssessmentEngine
from ..logging import setup_logging
from ..plugins import default_registry
from .pipeline import ProofLoadError, load_proof, load_stamp, run_assessment


# =============================================================================
# OUTPUT FORMATTING
# =============================================================================

def format_outcome_badge(assessment: Assessment) -> str:
    return f"[{assessment.credibility.outcome.value.upper()}]"


def format_assessment(assessment: Assessment) -> str:
    vector = assessment.credibility
    lines = [
        f"{format_outcome_badge(assessment)} {vector.operation.value} "
        f"| Score: {vector.overall_score:.3f} "
        f"| Stamps: {vector.verified_count}/{vector.submitted_count} verified",
    ]
    if vector.result_value is not None:
        lines.append(f"Measured: {vector.result_value:.2f} m")

    if assessment.stamp_results:
        lines.append("")
        lines.append("STAMPS:")
        for result in assessment.stamp_results:
            ev = result.evaluation
            lines.append(
                f"  • #{result.stamp_index} {result.plugin}: "
                f"{ev.distance_meters:.1f} m, overlap {ev.temporal_overlap:.2f}, "
                f"{'within' if ev.within_radius else 'outside'} radius"
            )

    if assessment.rejections:
        lines.append("")
        lines.append("REJECTIONS (for audit):")
        for rejection in assessment.rejections:
            lines.append(
                f"  • #{rejection.stamp_index} {rejection.plugin} "
                f"[{rejection.rule.value}] {rejection.reason}"
            )

    return "\n".join(lines)


def _jsonable(value: Any) -> Any:
    if isinstance(value, bytes):
        return "0x" + value.hex()
    if isinstance(value, (list, tuple)):
        return [_jsonable(v) for v in value]
    return value


def _build_engine() -> AssessmentEngine:
    return AssessmentEngine.from_settings(get_settings())


# =============================================================================
# CLI COMMANDS
# =============================================================================

def cmd_assess(args: argparse.Namespace) -> int:
    """Assess a proof and print the outcome."""
    try:
        bundle = load_proof(args.proof)
        assessment = run_assessment(bundle, engine=_build_engine())
    except (ProofLoadError, GeoStampError, ValueError) as e:
        print(f"ERROR: {e}", file=sys.stderr)
        return 1

    attestation = None
    if args.attest:
        try:
            attestation = AssessmentEngine.attest(assessment, timestamp=args.timestamp)
        except UnverifiableAttestation as e:
            print(f"ERROR: {e}", file=sys.stderr)
            return 1

    if args.json:
        output = assessment.to_dict()
        if attestation is not None:
            output["attestation"] = attestation.to_dict()
        print(json.dumps(output, indent=2, sort_keys=True, default=str))
        return 0

    print("GeoStamp Assessment")
    print("=" * 50)
    print(format_assessment(assessment))
    if attestation is not None:
        print()
        print(f"ATTESTATION ({attestation.schema_id.value}):")
        print(f"  {attestation.hex}")
    return 0


def cmd_explain(args: argparse.Namespace) -> int:
    """Show the full score breakdown."""
    try:
        bundle = load_proof(args.proof)
        assessment = run_assessment(bundle, engine=_build_engine())
    except (ProofLoadError, GeoStampError, ValueError) as e:
        print(f"ERROR: {e}", file=sys.stderr)
        return 1

    print("GeoStamp — Assessment Explanation")
    print("=" * 50)
    print()
    print(generate_explanation(assessment.credibility))
    return 0


def cmd_verify_stamp(args: argparse.Namespace) -> int:
    """Verify a single stamp with its plugin."""
    try:
        stamp = load_stamp(args.stamp)
        result = _build_engine().verify_stamp(stamp)
    except (ProofLoadError, PluginNotFound) as e:
        print(f"ERROR: {e}", file=sys.stderr)
        return 1

    status = "VALID" if result.valid else "INVALID"
    print(f"[{status}] {stamp.plugin} v{stamp.plugin_version}")
    print(f"  structure:  {'ok' if result.structure_valid else 'failed'}")
    print(f"  signatures: {'ok' if result.signatures_valid else 'failed'}")
    print(f"  signals:    {'ok' if result.signals_consistent else 'failed'}")
    if result.reason:
        print(f"  reason:     {result.reason}")
    if result.details:
        print(f"  details:    {json.dumps(result.details, sort_keys=True, default=str)}")
    return 0 if result.valid else 1


def cmd_plugins(args: argparse.Namespace) -> int:
    """List registered plugins."""
    registry = default_registry(get_settings().clock_skew_seconds)
    for meta in registry.list_plugins():
        print(f"{meta.name} v{meta.version} [{', '.join(meta.environments)}]")
        print(f"    {meta.description}")
    return 0


def cmd_decode(args: argparse.Namespace) -> int:
    """Decode attestation bytes under a schema."""
    try:
        record = decode_attestation(args.schema, args.data)
    except GeoStampError as e:
        print(f"ERROR: {e}", file=sys.stderr)
        return 1

    fields = {name: _jsonable(value) for name, value in vars(record).items()}
    print(json.dumps({"schema": args.schema, "fields": fields}, indent=2))
    return 0


# =============================================================================
# MAIN ENTRY POINT
# =============================================================================

def create_parser() -> argparse.ArgumentParser:
    """Create the CLI argument parser."""
    parser = argparse.ArgumentParser(
        prog="geostamp",
        description="GeoStamp — Location Proof Verification and Credibility Assessment",
    )

    subparsers = parser.add_subparsers(
        title="commands",
        description="Available commands",
        dest="command",
    )

    # Assess command
    assess_parser = subparsers.add_parser(
        "assess",
        help="Assess a claim against its stamps",
    )
    assess_parser.add_argument(
        "proof",
        nargs="?",
        help="Proof JSON file (built-in sample if omitted)",
    )
    assess_parser.add_argument(
        "--json",
        action="store_true",
        help="Print the assessment as JSON",
    )
    assess_parser.add_argument(
        "--attest",
        action="store_true",
        help="Encode the outcome into its policy attestation schema",
    )
    assess_parser.add_argument(
        "--timestamp",
        type=int,
        default=None,
        help="Attestation timestamp in Unix seconds (evaluation time if omitted)",
    )
    assess_parser.set_defaults(func=cmd_assess)

    # Explain command
    explain_parser = subparsers.add_parser(
        "explain",
        help="Show the score breakdown for a proof",
    )
    explain_parser.add_argument(
        "proof",
        nargs="?",
        help="Proof JSON file (built-in sample if omitted)",
    )
    explain_parser.set_defaults(func=cmd_explain)

    # Verify-stamp command
    verify_parser = subparsers.add_parser(
        "verify-stamp",
        help="Run one stamp's plugin verification",
    )
    verify_parser.add_argument(
        "stamp",
        help="Stamp JSON file",
    )
    verify_parser.set_defaults(func=cmd_verify_stamp)

    # Plugins command
    plugins_parser = subparsers.add_parser(
        "plugins",
        help="List registered plugins",
    )
    plugins_parser.set_defaults(func=cmd_plugins)

    # Decode command
    decode_parser = subparsers.add_parser(
        "decode",
        help="Decode attestation bytes",
    )
    decode_parser.add_argument(
        "schema",
        choices=[s.value for s in SchemaId],
        help="Attestation schema",
    )
    decode_parser.add_argument(
        "data",
        help="ABI-encoded data as hex (0x prefix optional)",
    )
    decode_parser.set_defaults(func=cmd_decode)

    return parser


def main(argv: Optional[list[str]] = None) -> int:
    """Main entry point for the CLI."""
    parser = create_parser()
    args = parser.parse_args(argv)

    if args.command is None:
        parser.print_help()
        return 0

    try:
        settings = get_settings()
    except ValueError as e:
        print(f"ERROR: invalid configuration: {e}", file=sys.stderr)
        return 1
    setup_logging(settings)

    return args.func(args)


if __name__ == "__main__":
    sys.exit(main())
