#!/usr/bin/env python3
"""
Multi-tenancy scoping lint check.

Scans the storefront package for code that could leak data across tenants:
1. Hardcoded tenant id constants
2. select(Model) on tenant-owned tables without a tenant_id filter nearby
3. Tenant ids read from a request body instead of the resolved context

USAGE:
    python scripts/check_tenant_scoping.py

    # Detailed findings
    python scripts/check_tenant_scoping.py -v

    # CI: exit 1 when CRITICAL/HIGH findings exist
    python scripts/check_tenant_scoping.py --strict

A line can opt out with a trailing "# noqa: tenant-scoping".
"""

import argparse
import re
import sys
from dataclasses import dataclass
from pathlib import Path
from typing import List, Optional, Sequence, Tuple

# ────────────────────────────────────────────────────────────────
# Configuration
# ────────────────────────────────────────────────────────────────

SCAN_ROOT = Path(__file__).parent.parent / "storefront"

EXCLUDE_PATTERNS = [
    "__pycache__",
    ".pyc",
    "tenancy/",  # Scoped helpers live here and are reviewed separately
    "test_",
]

TENANT_OWNED_MODELS = ("Product", "Order", "Client", "Staff", "Category", "Appointment")

# Lines after a select() that may still belong to the same statement
CONTEXT_LINES = 6

SCOPED_RE = re.compile(r"\.tenant_id\s*==|tenant_filter\(|scoped_select\(")

BAD_PATTERNS: List[Tuple[str, str, str]] = [
    # (pattern, severity, description)
    (
        r"^[A-Z_]*TENANT_ID\s*=\s*\d+",
        "CRITICAL",
        "Hardcoded TENANT_ID constant - resolve the tenant from the request",
    ),
    (
        r"tenant_id\s*=\s*\d+[,\)\s]",
        "WARNING",
        "Hardcoded tenant_id literal - use access.tenant_id",
    ),
    (
        rf"select\(({'|'.join(TENANT_OWNED_MODELS)})\)",
        "HIGH",
        "Query on a tenant-owned table without tenant_id filter - potential cross-tenant leak",
    ),
    (
        r"(payload|body|data)\.(tenant_id|tenant)\b|(payload|body|data)\.get\(\s*[\"']tenant",
        "HIGH",
        "Tenant taken from request body - only the resolved tenant may be trusted",
    ),
]

IGNORE_PATTERNS = [
    r"^\s*#",  # Comments
    r"noqa:\s*tenant-scoping",  # Explicit suppression
    r"tenant_id: int",  # Type annotations
    r"tenant_id=tenant_id",  # Passing through
    r"tenant_id=access\.tenant_id",
    r"tenant_id=tenant\.tenant_id",
]


# ────────────────────────────────────────────────────────────────
# Data Classes
# ────────────────────────────────────────────────────────────────

@dataclass
class Finding:
    """A single tenant scoping issue."""

    file: Path
    line_num: int
    line_text: str
    severity: str
    description: str

    def __str__(self):
        return f"{self.severity}: {self.file}:{self.line_num} - {self.description}\n  > {self.line_text.strip()}"


# ────────────────────────────────────────────────────────────────
# Scanning Logic
# ────────────────────────────────────────────────────────────────

def should_exclude(path: Path) -> bool:
    path_str = path.as_posix()
    return any(excl in path_str for excl in EXCLUDE_PATTERNS)


def should_ignore_line(line: str) -> bool:
    return any(re.search(pattern, line) for pattern in IGNORE_PATTERNS)


def scan_source(source: str, file_path: Path) -> List[Finding]:
    """Scan source text; ``file_path`` is only used for reporting."""
    findings = []
    lines = source.split("\n")

    for line_num, line in enumerate(lines, 1):
        if should_ignore_line(line):
            continue

        for pattern, severity, description in BAD_PATTERNS:
            if not re.search(pattern, line):
                continue
            if pattern.startswith("select"):
                # Multi-line statements: accept a tenant filter a few lines below.
                window = "\n".join(lines[line_num - 1:line_num - 1 + CONTEXT_LINES])
                if SCOPED_RE.search(window):
                    continue
            findings.append(Finding(
                file=file_path,
                line_num=line_num,
                line_text=line,
                severity=severity,
                description=description,
            ))

    return findings


def scan_file(file_path: Path) -> List[Finding]:
    try:
        content = file_path.read_text(encoding="utf-8")
    except (OSError, UnicodeDecodeError) as e:
        print(f"Warning: Could not read {file_path}: {e}", file=sys.stderr)
        return []
    return scan_source(content, file_path)


def scan_directory(root: Path) -> List[Finding]:
    all_findings = []
    for path in sorted(root.rglob("*.py")):
        if should_exclude(path.relative_to(root)):
            continue
        all_findings.extend(scan_file(path))
    return all_findings


# ────────────────────────────────────────────────────────────────
# Reporting
# ────────────────────────────────────────────────────────────────

SEVERITY_ORDER = ["CRITICAL", "HIGH", "MEDIUM", "WARNING", "INFO"]


def print_report(findings: List[Finding], verbose: bool = False):
    if not findings:
        print("No tenant scoping issues found.")
        return

    by_severity = {}
    for f in findings:
        by_severity.setdefault(f.severity, []).append(f)

    print("\n" + "=" * 60)
    print("MULTI-TENANCY SCOPING CHECK REPORT")
    print("=" * 60)

    print("\nSUMMARY:")
    for sev in SEVERITY_ORDER:
        count = len(by_severity.get(sev, []))
        if count > 0:
            print(f"  {sev}: {count}")

    print(f"\nTOTAL: {len(findings)} issues")

    if verbose:
        print("\n" + "-" * 60)
        print("DETAILS:")
        print("-" * 60)
        for sev in SEVERITY_ORDER:
            for f in by_severity.get(sev, []):
                print(f"  {f.file}:{f.line_num}")
                print(f"    [{sev}] {f.description}")
                print(f"    > {f.line_text.strip()[:80]}")
    else:
        print("\nRun with -v for detailed findings.")


# ────────────────────────────────────────────────────────────────
# Main
# ────────────────────────────────────────────────────────────────

def main(argv: Optional[Sequence[str]] = None) -> int:
    parser = argparse.ArgumentParser(
        description="Check the storefront package for multi-tenancy scoping issues"
    )
    parser.add_argument("-v", "--verbose", action="store_true", help="Show detailed findings")
    parser.add_argument(
        "--strict",
        action="store_true",
        help="Exit with code 1 if CRITICAL or HIGH issues are found (for CI)",
    )
    parser.add_argument(
        "--path",
        type=Path,
        default=SCAN_ROOT,
        help=f"Path to scan (default: {SCAN_ROOT})",
    )
    args = parser.parse_args(argv)

    if not args.path.exists():
        print(f"Error: Path {args.path} does not exist", file=sys.stderr)
        return 1

    print(f"Scanning {args.path}...")
    findings = scan_directory(args.path)
    print_report(findings, verbose=args.verbose)

    if args.strict:
        blocking = sum(1 for f in findings if f.severity in ("CRITICAL", "HIGH"))
        if blocking:
            print(f"\n{blocking} critical/high issues found. Failing.")
            return 1
    return 0


if __name__ == "__main__":
    sys.exit(main())
