# SPDX-License-Identifier: MIT
"""
FerretWatch - Command Line Interface

This CLI provides:
- ferretwatch version
- ferretwatch rules [--category ...] [--rules <path>]
- ferretwatch scan <path|-> --format {text,json} --config <path> ...

Exit codes: 0 ok, 1 findings present with --fail-on-findings, 2 failure.
"""

import argparse
import json
import logging
import sys
from pathlib import Path

from . import __version__
from .core.exceptions import FerretWatchError
from .core.findings import RiskLevel

EXIT_OK = 0
EXIT_FINDINGS = 1
EXIT_ERROR = 2


def main(argv=None):
    argv = argv if argv is not None else sys.argv[1:]
    p = argparse.ArgumentParser(prog="ferretwatch", description="FerretWatch secret and phishing scanner")
    p.add_argument("-v", "--version", action="store_true", help="print version and exit")
    p.add_argument(
        "--log-level",
        default="WARNING",
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
        help="logging level (default: WARNING)",
    )

    sub = p.add_subparsers(dest="cmd")
    sub.add_parser("version", help="print version")

    rp = sub.add_parser("rules", help="list active rules")
    rp.add_argument("--rules", help="path to a YAML rule pack (replaces the built-in rules)")
    rp.add_argument("--category", action="append", help="only list this category (repeatable)")

    sp = sub.add_parser("scan", help="scan a file or stdin")
    sp.add_argument("path", help="file to scan, or '-' for stdin")
    sp.add_argument(
        "--format",
        choices=["text", "json"],
        default="text",
        help="output format (default: text)",
    )
    sp.add_argument("--config", help="path to config YAML file")
    sp.add_argument("--rules", help="path to a YAML rule pack (replaces the built-in rules)")
    sp.add_argument("--category", action="append", help="enable only this category (repeatable)")
    sp.add_argument(
        "--threshold",
        choices=[level.value for level in RiskLevel],
        help="drop findings below this risk level",
    )
    sp.add_argument("--timeout-ms", dest="timeout_ms", type=float, help="scan time budget in ms")
    sp.add_argument(
        "--trusted-domain",
        dest="trusted_domains",
        action="append",
        help="suppress findings mentioning this host; '*.domain' covers subdomains (repeatable)",
    )
    sp.add_argument(
        "--visible-text",
        dest="visible_text",
        action="store_true",
        help="treat input as HTML and scan only its visible text",
    )
    sp.add_argument("--origin", help="origin of the page, for off-origin form checks")
    sp.add_argument(
        "--fail-on-findings",
        dest="fail_on_findings",
        action="store_true",
        help="exit with status 1 when findings are reported",
    )
    sp.add_argument(
        "--no-redact",
        dest="redact",
        action="store_false",
        help="print matched values in clear",
    )

    args = p.parse_args(argv)
    logging.basicConfig(level=getattr(logging, args.log_level), format="%(levelname)s %(name)s: %(message)s")

    if args.version or args.cmd == "version":
        print(__version__)
        return EXIT_OK

    try:
        if args.cmd == "rules":
            return handle_rules_command(args)
        if args.cmd == "scan":
            return handle_scan_command(args)
    except FerretWatchError as e:
        print(f"Error: {e}", file=sys.stderr)
        return EXIT_ERROR

    p.print_help()
    return EXIT_OK


def _build_registry(rules_path):
    from .config import load_rules_file
    from .detectors import PatternRegistry, get_default_registry

    if not rules_path:
        return get_default_registry()

    registry = PatternRegistry()
    report = registry.load(load_rules_file(rules_path))
    for error in report.rejected:
        print(f"Warning: {error}", file=sys.stderr)
    return registry


def handle_rules_command(args):
    """Handle the rules subcommand."""
    registry = _build_registry(args.rules)
    wanted = set(args.category or [])

    for rule in registry.all_rules():
        if wanted and rule.category not in wanted:
            continue
        print(f"{rule.id:<28} {rule.category:<12} {rule.base_risk.value:<8} {rule.description}")
    return EXIT_OK


def _read_input(path):
    if path == "-":
        return sys.stdin.buffer.read()
    try:
        return Path(path).read_bytes()
    except OSError as e:
        raise FerretWatchError(f"Cannot read {path}: {e}") from e


def handle_scan_command(args):
    """Handle the scan subcommand."""
    from .config import load_config
    from .scanner import Scanner

    options, scoring = load_config(args.config)
    options = options.with_overrides(
        enabled_categories=frozenset(args.category) if args.category else None,
        risk_threshold=RiskLevel.parse(args.threshold) if args.threshold else None,
        scan_timeout_ms=args.timeout_ms,
        trusted_domains=tuple(args.trusted_domains) if args.trusted_domains else None,
        content_mode="visible" if args.visible_text else None,
        origin=args.origin,
        source_label="stdin" if args.path == "-" else args.path,
    )

    registry = _build_registry(args.rules)
    content = _read_input(args.path)

    with Scanner(registry=registry, scoring=scoring) as scanner:
        result = scanner.scan(content, options)

    if args.format == "json":
        print(json.dumps(result.to_dict(redact=args.redact), indent=2, default=str))
    else:
        print_text_summary(result, redact=args.redact)

    if args.fail_on_findings and result.findings:
        return EXIT_FINDINGS
    return EXIT_OK


def print_text_summary(result, redact=True):
    """Print a text summary of a scan result."""
    findings = result.findings

    print("\n🔍 FerretWatch Scan Results")
    print("=" * 50)
    print(f"Status: {result.status.value}{' (truncated)' if result.truncated else ''}")
    print(f"Total findings: {len(findings)}")

    if findings:
        print("\nFindings:")
        for finding in findings:
            value = finding.redacted_value if redact else finding.value
            count = f" x{finding.occurrences}" if finding.occurrences > 1 else ""
            print(
                f"  [{finding.risk_level.value.upper()}] {finding.rule_id} "
                f"({finding.category}) at {finding.start}: {value}{count}"
            )

    metrics = result.metrics
    print("\n📋 Metrics")
    print(f"  Rules evaluated: {metrics.patterns_evaluated}")
    print(f"  Matches: {metrics.matches_found}")
    print(f"  Rejected by validators: {metrics.candidates_rejected}")
    print(f"  Suppressed (trusted domains): {metrics.findings_suppressed}")
    print(f"  Below threshold: {metrics.below_threshold}")
    print(f"  Duration: {metrics.duration_ms:.1f} ms")


if __name__ == "__main__":
    sys.exit(main())
