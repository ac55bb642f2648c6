"""Security components: categorization, validation and confirmation."""

from commandgate.security.categorizer import (
    CATEGORIES,
    CategoryName,
    CommandAnalysis,
    CommandCategorizer,
    CommandCategory,
)
from commandgate.security.command_validator import (
    SecurityCheck,
    SecurityRule,
    SecurityValidationResult,
    SecurityValidator,
    Severity,
)
from commandgate.security.confirmation import (
    ConfirmationGate,
    ConfirmationOptions,
    ConfirmationRequest,
    ConfirmationResult,
    ConfirmationStats,
    DecisionSource,
    ScorePolicyDecisionSource,
    ScriptedDecisionSource,
    StaticDecisionSource,
    UserResponse,
)

__all__ = [
    "CATEGORIES",
    "CategoryName",
    "CommandAnalysis",
    "CommandCategorizer",
    "CommandCategory",
    "ConfirmationGate",
    "ConfirmationOptions",
    "ConfirmationRequest",
    "ConfirmationResult",
    "ConfirmationStats",
    "DecisionSource",
    "ScorePolicyDecisionSource",
    "ScriptedDecisionSource",
    "SecurityCheck",
    "SecurityRule",
    "SecurityValidationResult",
    "SecurityValidator",
    "Severity",
    "StaticDecisionSource",
    "UserResponse",
]
