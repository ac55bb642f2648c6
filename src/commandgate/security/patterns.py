"""Catastrophic command patterns.

Shared by the categorizer (which files matches under the ``destructive``
category) and the validator's blacklist check, so a blacklisted command is
always weighted as critical risk.
"""

import re

BLACKLIST_PATTERNS: tuple[tuple[str, str], ...] = (
    # Root or wildcard deletion
    (r"\brm\s+(-[a-z]*\s+)*-[a-z]*[rf][a-z]*\s+(-[a-z]*\s+)*/\*?(\s|;|&|\||$)", "rm -rf /"),
    (r"\brm\s+(-[a-z]*\s+)*--(recursive|force)\b.*\s/\*?(\s|;|&|\||$)", "rm --recursive /"),
    (r"\brm\s+-[a-z]*[rf][a-z]*\s+\*(\s|$)", "rm -rf *"),
    # Disk wipe and raw device writes
    (r"\bdd\s+if=/dev/(zero|random|urandom)\b", "dd from /dev/zero or /dev/random"),
    (r"\bof=/dev/(sd[a-z]|hd[a-z]|nvme\d|disk\d|mmcblk\d)", "dd onto a block device"),
    (r">>?\s*/dev/(sd[a-z]|hd[a-z]|nvme\d)", "redirect onto a block device"),
    # Format disk
    (r"\bmkfs(\.\w+)?\b", "mkfs"),
    (r"\bmkswap\s+/dev/", "mkswap on a device"),
    (r"\bfdisk\s+/dev/", "fdisk on a device"),
    (r"\bformat\s+[a-z]:", "format drive"),
    # Power control
    (r"\bshutdown\b", "shutdown"),
    (r"\bhalt\b", "halt"),
    (r"\breboot\b", "reboot"),
    (r"\bpoweroff\b", "poweroff"),
    (r"\binit\s+[06]\b", "init 0/6"),
    # Fork bomb
    (r":\s*\(\s*\)\s*\{\s*:\s*\|\s*:\s*&\s*\}\s*;\s*:", "fork bomb"),
    # Blanket permissions on root
    (r"\bchmod\s+(-r|--recursive)\s+777\s+/(\s|$)", "chmod -R 777 /"),
)

COMPILED_BLACKLIST: tuple[tuple[str, re.Pattern[str]], ...] = tuple(
    (description, re.compile(pattern, re.IGNORECASE)) for pattern, description in BLACKLIST_PATTERNS
)


def match_blacklist(command: str) -> list[str]:
    """Return descriptions of every blacklist pattern found in ``command``."""
    return [description for description, regex in COMPILED_BLACKLIST if regex.search(command)]


def is_blacklisted(command: str) -> bool:
    return any(regex.search(command) for _, regex in COMPILED_BLACKLIST)
