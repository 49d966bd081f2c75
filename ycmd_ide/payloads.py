"""
ycmd-ide - JSON payloads

Payloads are built as dicts and then serialized by encode(), which sends
every string through escape(). The signed body is exactly the text encode()
returns, so the escaping rules here are part of the wire protocol.
"""

import os
from pathlib import Path

from .filetypes import classify

_SHORT_ESCAPES = {
    "\\": "\\\\",
    '"': '\\"',
    "/": "\\/",
    "\b": "\\b",
    "\t": "\\t",
    "\n": "\\n",
    "\f": "\\f",
    "\r": "\\r",
}


def _escape_char(ch: str) -> str:
    short = _SHORT_ESCAPES.get(ch)
    if short is not None:
        return short
    if ch < " ":
        # JSON has no short form for vertical tab; it lands here too
        return "\\u%04x" % ord(ch)
    return ch


_ESCAPE_TABLE = {i: _escape_char(chr(i)) for i in range(0x20)}
_ESCAPE_TABLE.update({ord(k): v for k, v in _SHORT_ESCAPES.items()})
# Lone surrogates (e.g. from surrogateescape decoding) cannot be UTF-8 encoded
_ESCAPE_TABLE.update({i: "\\u%04x" % i for i in range(0xD800, 0xE000)})


def escape(text: str) -> str:
    """Escape `text` for use inside a JSON string literal (without quotes)."""
    return text.translate(_ESCAPE_TABLE)


def encode(obj) -> str:
    """Serialize a payload. Supports dict, list, tuple, str, int, bool and None."""
    if isinstance(obj, str):
        return '"' + escape(obj) + '"'
    if obj is True:
        return "true"
    if obj is False:
        return "false"
    if obj is None:
        return "null"
    if isinstance(obj, int):
        return str(obj)
    if isinstance(obj, dict):
        items = (encode(str(k)) + ": " + encode(v) for k, v in obj.items())
        return "{" + ", ".join(items) + "}"
    if isinstance(obj, (list, tuple)):
        return "[" + ", ".join(encode(v) for v in obj) + "]"
    raise TypeError(f"cannot encode {type(obj).__name__} in a ycmd payload")


def absolute_filepath(filepath: str) -> str:
    """Resolve a relative path against the current working directory."""
    if os.path.isabs(filepath):
        return filepath
    return str(Path.cwd() / filepath)


def file_data(filepath: str, contents: str, filetype: str | None = None) -> dict:
    """The {abs_path: {contents, filetypes}} unit every payload embeds."""
    if filetype is None:
        filetype = classify(filepath, contents)
    return {
        absolute_filepath(filepath): {
            "contents": contents,
            "filetypes": [filetype],
        }
    }


def event_notification(
    line_num: int,
    column_num: int,
    filepath: str,
    event_name: str,
    contents: str,
    filetype: str | None = None,
) -> dict:
    return {
        "column_num": column_num,
        "event_name": event_name,
        "file_data": file_data(filepath, contents, filetype),
        "filepath": absolute_filepath(filepath),
        "line_num": line_num,
    }


def completions(
    line_num: int,
    column_num: int,
    filepath: str,
    contents: str,
    completer_target: str = "filetype_default",
    filetype: str | None = None,
) -> dict:
    return {
        "line_num": line_num,
        "column_num": column_num,
        "filepath": absolute_filepath(filepath),
        "file_data": file_data(filepath, contents, filetype),
        "completer_target": completer_target,
    }


def simple_request(
    line_num: int,
    column_num: int,
    filepath: str,
    contents: str = "",
    filetype: str | None = None,
) -> dict:
    """Shape shared by extra-conf and semantic-completer requests."""
    return {
        "line_num": line_num,
        "column_num": column_num,
        "filepath": absolute_filepath(filepath),
        "file_data": file_data(filepath, contents, filetype),
    }
