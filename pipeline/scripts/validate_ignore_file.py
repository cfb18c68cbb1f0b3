"""Validate .security-scan-ignore entries: every entry needs a reason and a live expiry."""

from __future__ import annotations

import sys
from datetime import date, datetime, timezone
from pathlib import Path

import yaml

IGNORE_FILE = Path(".security-scan-ignore")


def validate(path: Path, today: date) -> list[str]:
    data = yaml.safe_load(path.read_text(encoding="utf-8"))
    if isinstance(data, dict):
        data = data.get("ignores", [])
    if not isinstance(data, list):
        return [f"{path}: expected a list of entries"]

    errors: list[str] = []
    for index, entry in enumerate(data):
        if not isinstance(entry, dict) or not entry.get("rule"):
            errors.append(f"entry {index}: missing 'rule'")
            continue
        label = f"{entry['rule']} ({entry.get('file', 'all files')})"
        if not str(entry.get("reason") or "").strip():
            errors.append(f"{label}: missing reason")
        expires = entry.get("expires")
        if expires is None:
            errors.append(f"{label}: missing expires YYYY-MM-DD")
            continue
        if isinstance(expires, datetime):
            expiry = expires.date()
        elif isinstance(expires, date):
            expiry = expires
        else:
            try:
                expiry = datetime.strptime(str(expires), "%Y-%m-%d").date()
            except ValueError:
                errors.append(f"{label}: invalid expiry format, expected YYYY-MM-DD")
                continue
        if expiry < today:
            errors.append(f"{label}: expired on {expiry}")
    return errors


def main(argv: list[str] | None = None) -> int:
    args = sys.argv[1:] if argv is None else argv
    path = Path(args[0]) if args else IGNORE_FILE
    if not path.exists():
        return 0
    try:
        errors = validate(path, datetime.now(timezone.utc).date())
    except yaml.YAMLError as exc:
        errors = [f"{path}: {exc}"]
    if errors:
        sys.stderr.write("Ignore file validation failed:\n" + "\n".join(errors) + "\n")
        return 1
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
