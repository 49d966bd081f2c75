"""
ycmd-ide - Startup options file

ycmd reads its settings, including the HMAC secret, from a JSON file named on
its command line. The file holds the secret in plain text, so it is created
private (0600) and removed again when the server stops.
"""

import json
import logging
import os
import tempfile
from pathlib import Path

from .config import ToolPaths

logger = logging.getLogger(__name__)

OPTIONS_PREFIX = "ycmd_ide_"
OPTIONS_SUFFIX = ".json"

FILETYPE_BLACKLIST = (
    "tagbar", "qf", "notes", "markdown", "netrw", "unite",
    "text", "vimwiki", "pandoc", "infolog", "mail",
)


def default_options(hmac_secret: str, tools: ToolPaths) -> dict:
    """The fixed option set handed to every server we start."""
    return {
        "filepath_completion_use_working_dir": 0,
        "auto_trigger": 1,
        "min_num_of_chars_for_completion": 2,
        "min_num_identifier_candidate_chars": 0,
        "semantic_triggers": {},
        "filetype_specific_completion_to_disable": {"gitcommit": 1},
        "seed_identifiers_with_syntax": 0,
        "collect_identifiers_from_comments_and_strings": 0,
        "collect_identifiers_from_tags_files": 0,
        "max_num_identifier_candidates": 10,
        "extra_conf_globlist": [],
        "global_ycm_extra_conf": "",
        "confirm_extra_conf": 1,
        "complete_in_comments": 0,
        "complete_in_strings": 1,
        "max_diagnostics_to_display": 30,
        "filetype_whitelist": {"*": 1},
        "filetype_blacklist": {name: 1 for name in FILETYPE_BLACKLIST},
        "auto_start_csharp_server": 1,
        "auto_stop_csharp_server": 1,
        "use_ultisnips_completer": 1,
        "csharp_server_port": 0,
        "hmac_secret": hmac_secret,
        "server_keep_logfiles": 0,
        "gocode_binary_path": tools.gocode,
        "godef_binary_path": tools.godef,
        "rust_src_path": tools.rust_src,
        "racerd_binary_path": tools.racerd,
        "python_binary_path": tools.python,
    }


def write_options_file(options: dict, directory: str | None = None) -> str:
    """Write `options` to a fresh private temp file and return its path."""
    fd, path = tempfile.mkstemp(prefix=OPTIONS_PREFIX, suffix=OPTIONS_SUFFIX, dir=directory)
    try:
        os.fchmod(fd, 0o600)
        with os.fdopen(fd, "w") as f:
            json.dump(options, f)
    except BaseException:
        Path(path).unlink(missing_ok=True)
        raise
    logger.debug("Wrote server options to %s", path)
    return path


def remove_options_file(path: str | None) -> bool:
    """Delete the options file if it still exists. True if one was removed."""
    if not path:
        return False
    try:
        Path(path).unlink()
    except FileNotFoundError:
        return False
    logger.debug("Removed server options file %s", path)
    return True
