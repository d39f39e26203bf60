"""
DESCR reader -- extracts the one-line summary of a package.

Every pkgsrc package directory carries a free-text DESCR file. The
summary shown in search results is its first sentence: everything up to
(and excluding) the first period, trimmed of surrounding whitespace.
"""

from pathlib import Path

DESCR_FILE = "DESCR"

# Largest DESCR accepted, in bytes
MAX_DESCR_BYTES = 4096

# ASCII whitespace only; str.strip() without arguments also eats Unicode spaces
ASCII_WHITESPACE = " \t\n\r\x0b\x0c"


class DescriptionTooLargeError(OSError):
    """A DESCR file exceeds the configured size limit."""

    def __init__(self, path: Path, limit: int) -> None:
        self.path = path
        self.limit = limit
        super().__init__(f"{path} is larger than {limit} bytes")


def extract_description(
    package_dir: Path,
    descr_file: str = DESCR_FILE,
    max_bytes: int = MAX_DESCR_BYTES,
) -> str:
    """Read a package's DESCR and return its first sentence.

    Args:
        package_dir: Package directory containing the description file
        descr_file: Name of the description file
        max_bytes: Maximum accepted file size

    Returns:
        The text before the first '.', trimmed. The whole trimmed content
        if there is no period; an empty string for an empty file.

    Raises:
        DescriptionTooLargeError: If the file is longer than max_bytes
        OSError: If the file cannot be read
    """
    path = package_dir / descr_file
    with open(path, "rb") as f:
        raw = f.read(max_bytes + 1)
    if len(raw) > max_bytes:
        raise DescriptionTooLargeError(path, max_bytes)

    text = raw.decode("utf-8", errors="replace")
    first, _, _ = text.partition(".")
    return first.strip(ASCII_WHITESPACE)
