# Shortcut Fixer backend package
# Scans Steam libraries and repairs game shortcuts (icon quick fix and deep repair).

__version__ = "1.0.0"
