"""
Troll Bait Web — Utility Helpers
================================

File size, thumbprint formatting and output filename generation.
"""

from __future__ import annotations


def format_thumbprint(thumbprint: str) -> str:
    """Upper-case, colon-separated thumbprint for display (``AB:CD:…``)."""
    t = thumbprint.upper()
    return ":".join(t[i:i + 2] for i in range(0, len(t), 2))


def human_file_size(size_bytes: int) -> str:
    """Convert byte count to a human-readable string (e.g. '1.5 MB')."""
    if size_bytes < 0:
        return "0 B"
    for unit in ("B", "KB", "MB", "GB", "TB"):
        if abs(size_bytes) < 1024.0:
            if unit == "B":
                return f"{size_bytes} {unit}"
            return f"{size_bytes:.1f} {unit}"
        size_bytes /= 1024.0  # type: ignore[assignment]
    return f"{size_bytes:.1f} PB"


def safe_output_filename(original: str, protecting: bool) -> str:
    """
    Derive an output filename for download.

    * Protecting   → append ``.enc``
    * Unprotecting → strip ``.enc`` if present, else prepend ``decrypted_``
    """
    if protecting:
        return original + ".enc"
    if original.endswith(".enc"):
        return original[:-4]
    return "decrypted_" + original
