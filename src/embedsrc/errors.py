"""Exceptions raised while reading debug-info containers."""


class EmbedSrcError(Exception):
    """Base class for embedsrc errors."""


class FormatError(EmbedSrcError):
    """Input bytes are not a recognizable Portable PDB or PE image."""


class DecodeFailure(EmbedSrcError):
    """An embedded-source blob is malformed and cannot be decoded."""
