"""Names that are Steam runtime packages rather than games."""

from typing import Iterable, Optional

DEFAULT_EXCLUSIONS = (
    'Steamworks Common Redistributables',
    'Steam Linux Runtime',
    'Proton',
)


def is_excluded(name: str, exclusions: Optional[Iterable[str]] = None) -> bool:
    """True if name contains any excluded substring (case-sensitive, like the client list)."""
    if exclusions is None:
        exclusions = DEFAULT_EXCLUSIONS
    return any(excluded and excluded in (name or '') for excluded in exclusions)
