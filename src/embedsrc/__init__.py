"""embedsrc - recover source files embedded in Portable PDB debug information."""

__version__ = "0.1.0"
