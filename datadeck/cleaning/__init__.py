from __future__ import annotations

from .cleaner import CleanOptions, clean_rows

__all__ = ["CleanOptions", "clean_rows"]
