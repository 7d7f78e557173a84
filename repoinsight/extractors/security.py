"""Hard-coded secret detection."""

import re
from pathlib import Path

from repoinsight.extractors.walk import iter_files, read_text

SECRET_PATTERNS: dict[str, re.Pattern[str]] = {
    "aws_access_key": re.compile(r"\b(AKIA|ASIA)[0-9A-Z]{16}\b"),
    "private_key": re.compile(r"-----BEGIN (RSA |EC |DSA |OPENSSH |PGP )?PRIVATE KEY( BLOCK)?-----"),
    "github_token": re.compile(r"\bgh[pousr]_[A-Za-z0-9]{36,}\b"),
    "generic_assignment": re.compile(
        r"(?i)\b(api[_-]?key|secret|password|passwd|token)\b\s*[:=]\s*[\"'][^\"'\s]{8,}[\"']"
    ),
}


def scan_text(text: str) -> int:
    """Count secret matches in a single text."""
    return sum(len(pattern.findall(text)) for pattern in SECRET_PATTERNS.values())


def scan_secrets(root: Path) -> int:
    """Count hard-coded secret matches across a snapshot."""
    findings = 0
    for path in iter_files(root):
        text = read_text(path)
        if text:
            findings += scan_text(text)
    return findings
