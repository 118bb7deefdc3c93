"""Selection profiles — reusable ``key=value`` files for repeated runs.

Example::

    # monthly claims export
    date_column=Submission Date
    date_order=DD/MM/YYYY
    remove=Mobile
    remove=Card No
    exclude_month=January 2024
    add=Reviewer
    order=Claim ID
    order=Submission Date
    order_preset=alphabetical
"""

from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path

from sheet_shaper.dates import DATE_ORDERS

_LIST_KEYS = {"remove", "exclude_month", "add", "order"}
_SCALAR_KEYS = {"date_column", "date_order", "order_preset"}
ORDER_PRESETS: tuple[str, ...] = ("original", "alphabetical")


@dataclass
class Profile:
    remove: list[str] = field(default_factory=list)
    exclude_month: list[str] = field(default_factory=list)
    add: list[str] = field(default_factory=list)
    order: list[str] = field(default_factory=list)
    date_column: str | None = None
    date_order: str | None = None
    order_preset: str | None = None


def parse_profile(text: str, source: str = "<profile>") -> Profile:
    """Parse profile *text*; blank lines and ``#`` comments are skipped.

    Raises
    ------
    ValueError
        On a line without ``=``, an unknown key, an empty value, or an
        unsupported ``date_order`` or ``order_preset``.
    """
    profile = Profile()
    for lineno, line in enumerate(text.splitlines(), start=1):
        stripped = line.strip()
        if not stripped or stripped.startswith("#"):
            continue
        if "=" not in stripped:
            raise ValueError(f"{source}:{lineno}: expected key=value, got {stripped!r}")
        key, value = (part.strip() for part in stripped.split("=", 1))
        key = key.lower().replace("-", "_")
        if not value:
            raise ValueError(f"{source}:{lineno}: empty value for {key!r}")
        if key in _LIST_KEYS:
            getattr(profile, key).append(value)
        elif key in _SCALAR_KEYS:
            setattr(profile, key, value)
        else:
            known = ", ".join(sorted(_LIST_KEYS | _SCALAR_KEYS))
            raise ValueError(f"{source}:{lineno}: unknown key {key!r} (expected one of {known})")

    if profile.date_order is not None and profile.date_order not in DATE_ORDERS:
        raise ValueError(
            f"{source}: date_order must be {' or '.join(DATE_ORDERS)}, got {profile.date_order!r}"
        )
    if profile.order_preset is not None:
        profile.order_preset = profile.order_preset.lower()
        if profile.order_preset not in ORDER_PRESETS:
            raise ValueError(
                f"{source}: order_preset must be {' or '.join(ORDER_PRESETS)}, "
                f"got {profile.order_preset!r}"
            )
    return profile


def load_profile(path: Path | None) -> Profile:
    """Load a profile file; ``None`` yields an empty profile."""
    if not path:
        return Profile()
    if not path.exists():
        raise ValueError(f"Profile not found: {path} (expected lines like remove=Mobile)")
    if path.is_dir():
        raise ValueError(f"Profile is a directory, not a file: {path}")
    try:
        text = path.read_text(encoding="utf-8")
    except OSError as exc:
        raise ValueError(f"Cannot read profile {path}: {exc}") from exc
    return parse_profile(text, source=str(path))
