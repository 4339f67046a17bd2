"""Public API for FerretWatch scanning.

Hosts import the scanner layer like:
    from ferretwatch.scanner import Scanner, ScanOptions
"""

from .aggregate import Aggregator, normalize_value
from .engine import AdmissionGate, ScanHandle, Scanner, get_shared_scanner, scan
from .matcher import MatchLimits, MatchOutcome, match, match_rule
from .options import ScanOptions

__all__ = [
    "AdmissionGate",
    "Aggregator",
    "MatchLimits",
    "MatchOutcome",
    "ScanHandle",
    "ScanOptions",
    "Scanner",
    "get_shared_scanner",
    "match",
    "match_rule",
    "normalize_value",
    "scan",
]
