"""Utility functions for embedsrc."""

from embedsrc.utils.binary import (
    is_candidate_extension,
    looks_like_pe_image,
    looks_like_portable_pdb,
    looks_like_windows_pdb,
)

__all__ = [
    "is_candidate_extension",
    "looks_like_pe_image",
    "looks_like_portable_pdb",
    "looks_like_windows_pdb",
]
