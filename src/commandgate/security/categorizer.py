"""Command categorization.

Maps a command line onto one of a fixed set of categories that drive its
default risk posture. Categorization is pure: the same input always produces
the same analysis, and unknown commands fall back to a low-confidence
category instead of raising.
"""

import re
from collections.abc import Callable, Sequence
from dataclasses import dataclass
from enum import Enum

from commandgate.core.command_executor import RiskLevel
from commandgate.security.patterns import is_blacklisted

FALLBACK_CONFIDENCE = 0.3
RECOGNIZED_CONFIDENCE = 0.5


class CategoryName(str, Enum):
    DESTRUCTIVE = "destructive"
    SYSTEM_ADMIN = "system-admin"
    FILE_SYSTEM_READ = "file-system-read"
    FILE_SYSTEM_WRITE = "file-system-write"
    NETWORK = "network"
    DEVELOPMENT = "development"
    PACKAGE_MANAGEMENT = "package-management"


@dataclass(frozen=True)
class CommandCategory:
    """Classification bucket with its default risk posture."""

    name: CategoryName
    risk_level: RiskLevel
    requires_confirmation: bool
    allowed_in_sandbox: bool
    description: str


@dataclass(frozen=True)
class CommandAnalysis:
    """Result of categorizing one command line."""

    category: CommandCategory
    confidence: float
    reasons: tuple[str, ...]
    recommendations: tuple[str, ...]

    @property
    def recognized(self) -> bool:
        """False when no rule matched and the fallback category was used."""
        return self.confidence >= RECOGNIZED_CONFIDENCE


CATEGORIES: dict[CategoryName, CommandCategory] = {
    category.name: category
    for category in (
        CommandCategory(
            name=CategoryName.DESTRUCTIVE,
            risk_level=RiskLevel.CRITICAL,
            requires_confirmation=True,
            allowed_in_sandbox=False,
            description="Irreversible destruction or power control",
        ),
        CommandCategory(
            name=CategoryName.SYSTEM_ADMIN,
            risk_level=RiskLevel.CRITICAL,
            requires_confirmation=True,
            allowed_in_sandbox=False,
            description="System administration commands",
        ),
        CommandCategory(
            name=CategoryName.FILE_SYSTEM_READ,
            risk_level=RiskLevel.LOW,
            requires_confirmation=False,
            allowed_in_sandbox=True,
            description="Read-only file system operations",
        ),
        CommandCategory(
            name=CategoryName.FILE_SYSTEM_WRITE,
            risk_level=RiskLevel.MEDIUM,
            requires_confirmation=True,
            allowed_in_sandbox=True,
            description="File system modifications",
        ),
        CommandCategory(
            name=CategoryName.NETWORK,
            risk_level=RiskLevel.MEDIUM,
            requires_confirmation=True,
            allowed_in_sandbox=True,
            description="Network operations",
        ),
        CommandCategory(
            name=CategoryName.DEVELOPMENT,
            risk_level=RiskLevel.LOW,
            requires_confirmation=False,
            allowed_in_sandbox=True,
            description="Development tools and utilities",
        ),
        CommandCategory(
            name=CategoryName.PACKAGE_MANAGEMENT,
            risk_level=RiskLevel.MEDIUM,
            requires_confirmation=True,
            allowed_in_sandbox=True,
            description="Package installation and management",
        ),
    )
}

_missing = set(CategoryName) - set(CATEGORIES)
if _missing:
    raise RuntimeError(f"Category table is missing {sorted(m.value for m in _missing)}")


def normalize_command(command: str, args: Sequence[str] = ()) -> str:
    """Lowercased ``"<command> <args...>"`` used by every rule."""
    return " ".join([command, *args]).lower().strip()


def _word_patterns(*patterns: str) -> Callable[[str], bool]:
    """Match patterns as whole words; the command itself may carry a path."""
    regexes = [re.compile(r"(?:^|\s)" + re.escape(p) + r"(?=\s|$)") for p in patterns]

    def predicate(text: str) -> bool:
        head, _, rest = text.partition(" ")
        probe = f"{head.rsplit('/', 1)[-1]} {rest}".strip()
        return any(regex.search(probe) for regex in regexes)

    return predicate


@dataclass(frozen=True)
class CategoryRule:
    category: CategoryName
    confidence: float
    matches: Callable[[str], bool]
    reasons: tuple[str, ...]
    recommendations: tuple[str, ...]


# Evaluated in order; the first matching rule wins.
RULES: tuple[CategoryRule, ...] = (
    CategoryRule(
        CategoryName.DESTRUCTIVE,
        0.99,
        is_blacklisted,
        ("Command matches a known catastrophic pattern",),
        ("Do not execute", "Verify command necessity"),
    ),
    CategoryRule(
        CategoryName.SYSTEM_ADMIN,
        0.95,
        _word_patterns(
            "sudo", "su", "doas", "pkexec", "rm -rf", "rm -fr", "chmod 777", "chmod -r 777",
            "chown", "systemctl", "service", "mount", "umount", "fdisk",
        ),
        ("Command requires elevated privileges or modifies system",),
        ("Verify command necessity", "Check for potential system impact"),
    ),
    CategoryRule(
        CategoryName.FILE_SYSTEM_READ,
        0.9,
        _word_patterns(
            "ls", "cat", "head", "tail", "grep", "find", "locate", "which", "pwd", "wc",
            "file", "stat",
        ),
        ("Command performs read-only file operations",),
        ("Safe to execute without confirmation",),
    ),
    CategoryRule(
        CategoryName.FILE_SYSTEM_WRITE,
        0.8,
        _word_patterns(
            "mkdir", "touch", "cp", "mv", "ln", "echo >", "tee", "rm", "rmdir", "unlink",
            "truncate",
        ),
        ("Command modifies file system",),
        ("Review destination paths", "Ensure backup if needed"),
    ),
    CategoryRule(
        CategoryName.NETWORK,
        0.85,
        _word_patterns(
            "curl", "wget", "ssh", "scp", "rsync", "ping", "netstat", "nc", "ncat", "netcat",
            "telnet",
        ),
        ("Command performs network operations",),
        ("Verify destination URLs/IPs", "Check for sensitive data transmission"),
    ),
    CategoryRule(
        CategoryName.DEVELOPMENT,
        0.8,
        _word_patterns(
            "git", "node", "python", "python3", "java", "gcc", "make", "cmake", "mvn", "gradle",
        ),
        ("Command uses development tools",),
        ("Review code changes if applicable",),
    ),
    CategoryRule(
        CategoryName.PACKAGE_MANAGEMENT,
        0.9,
        _word_patterns(
            "npm", "yarn", "pip", "pip3", "apt", "apt-get", "yum", "brew", "cargo", "composer",
        ),
        ("Command manages packages or dependencies",),
        ("Verify package sources", "Check for version conflicts"),
    ),
)


class CommandCategorizer:
    """Classifies command lines into the fixed category set."""

    def analyze(self, command: str, args: Sequence[str] | None = None) -> CommandAnalysis:
        """Categorize ``command`` with ``args``. Never raises on unknown input."""
        text = normalize_command(command, args or ())

        for rule in RULES:
            if rule.matches(text):
                return CommandAnalysis(
                    category=CATEGORIES[rule.category],
                    confidence=rule.confidence,
                    reasons=rule.reasons,
                    recommendations=rule.recommendations,
                )

        return CommandAnalysis(
            category=CATEGORIES[CategoryName.DEVELOPMENT],
            confidence=FALLBACK_CONFIDENCE,
            reasons=("Command not recognized, defaulting to development category",),
            recommendations=("Manual review recommended", "Verify command safety"),
        )

    def categories(self) -> list[CommandCategory]:
        return list(CATEGORIES.values())

    def get_category(self, name: CategoryName | str) -> CommandCategory:
        return CATEGORIES[CategoryName(name)]
