"""Rule-based security validation.

Runs a fixed, ordered list of independent checks over the normalized command
line and folds the outcomes into a 0-100 score weighted by the command's
category risk.
"""

import re
from collections.abc import Callable, Sequence
from dataclasses import dataclass
from enum import Enum

from commandgate.core.command_executor import RiskLevel
from commandgate.security.categorizer import CommandAnalysis, normalize_command
from commandgate.security.patterns import match_blacklist

VALIDITY_SCORE = 70

CATEGORY_SCORE_MULTIPLIERS: dict[RiskLevel, float] = {
    RiskLevel.LOW: 1.0,
    RiskLevel.MEDIUM: 0.85,
    RiskLevel.HIGH: 0.7,
    RiskLevel.CRITICAL: 0.5,
}
# Applied when a category carries a risk level missing from the table above
UNKNOWN_RISK_MULTIPLIER = 0.8


class Severity(str, Enum):
    INFO = "info"
    WARNING = "warning"
    ERROR = "error"
    CRITICAL = "critical"


@dataclass(frozen=True)
class SecurityCheck:
    """Outcome of one rule."""

    name: str
    description: str
    severity: Severity
    passed: bool
    message: str


@dataclass(frozen=True)
class SecurityValidationResult:
    is_valid: bool
    score: int
    checks: tuple[SecurityCheck, ...]
    recommendations: tuple[str, ...]

    def check(self, name: str) -> SecurityCheck | None:
        return next((c for c in self.checks if c.name == name), None)

    @property
    def failed_checks(self) -> list[SecurityCheck]:
        return [c for c in self.checks if not c.passed]


@dataclass(frozen=True)
class SecurityRule:
    """A pure predicate over the normalized command line.

    ``detect`` returns the findings; an empty list means the check passed.
    """

    name: str
    description: str
    severity: Severity
    detect: Callable[[str], list[str]]
    pass_message: str
    fail_message: str
    recommendation: str

    def evaluate(self, text: str) -> SecurityCheck:
        findings = self.detect(text)
        if not findings:
            return SecurityCheck(self.name, self.description, Severity.INFO, True, self.pass_message)
        return SecurityCheck(
            self.name,
            self.description,
            self.severity,
            False,
            f"{self.fail_message}: {', '.join(findings)}",
        )


def _regex_detector(patterns: Sequence[tuple[str, str]]) -> Callable[[str], list[str]]:
    compiled = [(label, re.compile(pattern, re.IGNORECASE)) for pattern, label in patterns]

    def detect(text: str) -> list[str]:
        return [label for label, regex in compiled if regex.search(text)]

    return detect


def _tokens(text: str) -> list[str]:
    return [token.strip("'\"") for token in text.split()]


SUSPICIOUS_PATTERNS: tuple[tuple[str, str], ...] = (
    (r"\b(curl|wget)\b.*\|\s*(sudo\s+)?(ba|z|k|da)?sh\b", "download piped to shell"),
    (r"\b(curl|wget)\b.*\|\s*(sudo\s+)?(python[0-9.]*|perl|ruby|node)\b", "download piped to interpreter"),
    (r"\beval\b.*\$", "dynamic evaluation"),
    (r"\bexec\b.*\$", "dynamic execution"),
    (r"\$\(.*\)", "command substitution"),
    (r"`.*`", "backtick substitution"),
    (r"/dev/(tcp|udp)/", "shell network redirection"),
    (r"\b(nc|ncat|netcat)\b.*\s-[ec]\s", "netcat program execution"),
    (r"(;|&&|\|\|?)\s*(rm|dd|format)\b", "chained destructive command"),
)

ESCALATION_PATTERNS: tuple[tuple[str, str], ...] = (
    (r"(^|[\s;&|(])sudo\b", "sudo"),
    (r"(^|[\s;&|(])su(\s|$)", "su"),
    (r"(^|[\s;&|(])doas\b", "doas"),
    (r"(^|[\s;&|(])pkexec\b", "pkexec"),
)

DESTRUCTIVE_FS_OPERATIONS = frozenset({"rm", "rmdir", "unlink", "truncate", "shred", "dd"})
PROTECTED_PATH_PREFIXES = ("/etc/", "/sys/", "/proc/", "/dev/", "/boot/")

NETWORK_TOOLS = frozenset({"curl", "wget", "nc", "ncat", "netcat", "telnet", "ssh", "scp", "rsync"})
SUSPICIOUS_DESTINATIONS: tuple[tuple[str, str], ...] = (
    (r"(^|[\s@/])([a-z0-9-]+\.)+(tk|ml|ga|cf|gq)(?=$|[\s/:])", "suspicious TLD"),
    (r"\b\d{1,3}(\.\d{1,3}){3}\b", "raw IP address"),
    (r"\blocalhost:\d+", "localhost with port"),
)

INJECTION_VERBS = r"(rm|dd|format|shutdown|mkfs|shred)"
INJECTION_PATTERNS: tuple[tuple[str, str], ...] = (
    (r";\s*(sudo\s+)?" + INJECTION_VERBS + r"\b", "';' before destructive command"),
    (r"&&\s*(sudo\s+)?" + INJECTION_VERBS + r"\b", "'&&' before destructive command"),
    (r"\|\|\s*(sudo\s+)?" + INJECTION_VERBS + r"\b", "'||' before destructive command"),
    (r"(?<!\|)\|(?!\|)\s*(sudo\s+|xargs\s+)?" + INJECTION_VERBS + r"\b", "pipe into destructive command"),
    (r"`[^`]*\b" + INJECTION_VERBS + r"\b[^`]*`", "destructive command in backticks"),
    (r"\$\([^)]*\b" + INJECTION_VERBS + r"\b[^)]*\)", "destructive command in $()"),
)


def _is_protected_path(token: str) -> bool:
    if "=" in token:
        token = token.split("=", 1)[1]
    if not token.startswith("/"):
        return False
    trimmed = token.rstrip("*").rstrip("/")
    if not trimmed:
        return True
    return any((trimmed + "/").startswith(prefix) for prefix in PROTECTED_PATH_PREFIXES)


def _detect_filesystem_danger(text: str) -> list[str]:
    tokens = _tokens(text)
    operations = sorted({t.rsplit("/", 1)[-1] for t in tokens} & DESTRUCTIVE_FS_OPERATIONS)
    if not operations:
        return []
    paths = [t for t in tokens if _is_protected_path(t)]
    if not paths:
        return []
    return [f"{op} on {path}" for op in operations for path in paths][:5]


_detect_destination = _regex_detector(SUSPICIOUS_DESTINATIONS)


def _detect_network_danger(text: str) -> list[str]:
    tools = sorted({t.rsplit("/", 1)[-1] for t in _tokens(text)} & NETWORK_TOOLS)
    if not tools:
        return []
    destinations = _detect_destination(text)
    if not destinations:
        return []
    return [f"{', '.join(tools)} with {d}" for d in destinations]


SECURITY_RULES: tuple[SecurityRule, ...] = (
    SecurityRule(
        name="blacklist-check",
        description="Verify command is not explicitly blacklisted",
        severity=Severity.CRITICAL,
        detect=match_blacklist,
        pass_message="No blacklisted patterns detected",
        fail_message="Command contains blacklisted patterns",
        recommendation="This command is explicitly blacklisted due to high risk",
    ),
    SecurityRule(
        name="suspicious-patterns",
        description="Check for suspicious command patterns",
        severity=Severity.WARNING,
        detect=_regex_detector(SUSPICIOUS_PATTERNS),
        pass_message="No suspicious patterns detected",
        fail_message="Suspicious patterns detected",
        recommendation="Command contains suspicious patterns that may indicate security risks",
    ),
    SecurityRule(
        name="privilege-escalation",
        description="Check for privilege escalation attempts",
        severity=Severity.WARNING,
        detect=_regex_detector(ESCALATION_PATTERNS),
        pass_message="No privilege escalation detected",
        fail_message="Privilege escalation detected",
        recommendation="Command attempts privilege escalation - verify necessity",
    ),
    SecurityRule(
        name="filesystem-safety",
        description="Check for dangerous file system operations",
        severity=Severity.ERROR,
        detect=_detect_filesystem_danger,
        pass_message="File system operations appear safe",
        fail_message="Destructive operation on a protected path",
        recommendation="Command may modify critical system files - review target paths",
    ),
    SecurityRule(
        name="network-security",
        description="Check network command security",
        severity=Severity.WARNING,
        detect=_detect_network_danger,
        pass_message="No suspicious network destination detected",
        fail_message="Network command with suspicious destination",
        recommendation="Network command detected - verify destination safety",
    ),
    SecurityRule(
        name="command-injection",
        description="Check for command injection attempts",
        severity=Severity.ERROR,
        detect=_regex_detector(INJECTION_PATTERNS),
        pass_message="No command injection detected",
        fail_message="Potential command injection detected",
        recommendation="Potential command injection detected - check command chaining",
    ),
)


class SecurityValidator:
    """Scores commands against ``SECURITY_RULES``."""

    def __init__(self, rules: Sequence[SecurityRule] | None = None) -> None:
        self.rules = tuple(rules) if rules is not None else SECURITY_RULES
        if not self.rules:
            raise ValueError("SecurityValidator needs at least one rule")

    def validate(
        self, command: str, args: Sequence[str] | None, analysis: CommandAnalysis
    ) -> SecurityValidationResult:
        text = normalize_command(command, args or ())

        checks = tuple(rule.evaluate(text) for rule in self.rules)
        recommendations = tuple(
            rule.recommendation for rule, check in zip(self.rules, checks) if not check.passed
        )

        passed = sum(1 for check in checks if check.passed)
        base_score = passed / len(checks) * 100
        score = round(base_score * self.score_multiplier(analysis))
        score = max(0, min(100, score))

        critical_failure = any(
            check.severity is Severity.CRITICAL and not check.passed for check in checks
        )
        return SecurityValidationResult(
            is_valid=score >= VALIDITY_SCORE and not critical_failure,
            score=score,
            checks=checks,
            recommendations=recommendations,
        )

    @staticmethod
    def score_multiplier(analysis: CommandAnalysis) -> float:
        return CATEGORY_SCORE_MULTIPLIERS.get(analysis.category.risk_level, UNKNOWN_RISK_MULTIPLIER)
