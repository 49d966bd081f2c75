"""
ycmd-ide - Filetype classification and the column convention

classify() maps a path (and, for ambiguous headers, the buffer text) to the
filetype tag ycmd expects in file_data.filetypes.
"""

from pathlib import PurePath

# Completers that index columns natively; everyone else gets column + 1.
NATIVE_INDEXED = frozenset({"c", "cpp", "objc", "objcpp"})

EXTENSION_MAP = {
    ".cs": "cs",
    ".go": "go",
    ".rs": "rust",
    ".mm": "objcpp",
    ".m": "objc",
    ".cpp": "cpp",
    ".C": "cpp",
    ".cxx": "cpp",
    ".cc": "cpp",
    ".c": "c",
    ".hpp": "cpp",
    ".js": "javascript",
    ".py": "python",
    ".ts": "typescript",
}

# Content markers that make a .h header C++ rather than C
CPP_HEADER_MARKERS = (
    "using namespace",
    "iostream",
    "\tclass ",
    " class ",
    "private:",
    "public:",
    "protected:",
)


def classify(filepath: str, content: str = "") -> str:
    """Return the filetype tag for `filepath`, or "" if unknown."""
    suffix = PurePath(filepath).suffix
    if suffix.lower() == ".h":
        if any(marker in content for marker in CPP_HEADER_MARKERS):
            return "cpp"
        return "c"
    if suffix in EXTENSION_MAP:
        return EXTENSION_MAP[suffix]
    return EXTENSION_MAP.get(suffix.lower(), "")


def is_native_indexed(filetype: str) -> bool:
    return filetype in NATIVE_INDEXED


def server_column(column: int, filetype: str) -> int:
    """Column to send for the host's 0-based `column`.

    Non C-family completers are sent column + 1; the C family gets the
    column unchanged. ycmd relies on this exact offset.
    """
    if is_native_indexed(filetype):
        return column
    return column + 1
