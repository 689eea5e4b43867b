"""Binary signature and file-type helpers."""

from pathlib import Path

# Extensions of files that may carry a Portable PDB
PE_EXTENSIONS = {".dll", ".exe"}
PDB_EXTENSIONS = {".pdb"}
CANDIDATE_EXTENSIONS = PE_EXTENSIONS | PDB_EXTENSIONS

# Signatures
SIG_PE_MZ = b"MZ"
SIG_METADATA_ROOT = b"BSJB"
SIG_MSF_PDB = b"Microsoft C/C++ MSF 7.00\r\n\x1aDS\x00\x00\x00"


def is_candidate_extension(path: str | Path) -> bool:
    """Check if the file extension marks a PE image or a PDB."""
    return Path(path).suffix.lower() in CANDIDATE_EXTENSIONS


def looks_like_pe_image(data: bytes) -> bool:
    """Check for the DOS header signature."""
    return data[:2] == SIG_PE_MZ


def looks_like_portable_pdb(data: bytes) -> bool:
    """Check for the ECMA-335 metadata root signature."""
    return data[:4] == SIG_METADATA_ROOT


def looks_like_windows_pdb(data: bytes) -> bool:
    """Check for the MSF container used by classic Windows PDBs.

    These carry no Portable PDB metadata and are reported as unsupported.
    """
    return data[: len(SIG_MSF_PDB)] == SIG_MSF_PDB
