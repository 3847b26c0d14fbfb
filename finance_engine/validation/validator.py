"""
Two-Stage Validation Pipeline for Income Sources

DESIGN DECISION: Validation happens in two distinct stages:

STAGE 1 - SCHEMA VALIDATION:
- Required field presence (name, base amount)
- Value ranges (positive amount, pay days 1-31)
- Pay day presence for non-weekly schedules

STAGE 2 - SEMANTIC VALIDATION:
- Expected bounds only on variable income
- min_expected <= max_expected
- Base amount inside the expected bounds
- Schedule sanity (biweekly expects two pay days)

Stage 2 only runs when stage 1 passes. Errors block persistence,
warnings are returned to the caller with the saved source.

IMPORTANT: Validation NEVER silently fixes issues.
"""

from typing import Optional

from finance_engine.models.ledger import IncomeSourceDraft, IncomeType, PayFrequency
from finance_engine.models.validation import ValidationIssue, ValidationResult


class IncomeSourceValidationError(Exception):
    """Raised when an income source draft fails validation."""

    def __init__(self, result: ValidationResult):
        self.result = result
        messages = [i.message for i in result.issues if i.severity == "error"]
        super().__init__("; ".join(messages) or "Income source validation failed")


class InvalidRequestError(ValueError):
    """Raised when a request asks for something the engine can't do."""
    pass


class IncomeSourceValidator:
    """
    Validates income source drafts through a two-stage pipeline.

    Stateless: the validator never touches storage.
    """

    def _validate_schema(
        self,
        draft: IncomeSourceDraft,
    ) -> tuple[bool, list[ValidationIssue]]:
        """
        Stage 1: Schema validation.

        Returns: (is_valid, list_of_issues)
        """
        issues = []

        if not draft.name:
            issues.append(ValidationIssue(
                field="name",
                issue_type="missing",
                message="Income source name is required",
                severity="error",
                suggested_fix="Give the source a name such as 'Salary'",
            ))

        if draft.base_amount is None:
            issues.append(ValidationIssue(
                field="base_amount",
                issue_type="missing",
                message="Base amount is required",
                severity="error",
            ))
        elif draft.base_amount <= 0:
            issues.append(ValidationIssue(
                field="base_amount",
                issue_type="invalid_value",
                message="Base amount must be greater than zero",
                severity="error",
            ))

        pay_days = draft.pay_days or []
        out_of_range = [d for d in pay_days if d < 1 or d > 31]
        if out_of_range:
            issues.append(ValidationIssue(
                field="pay_days",
                issue_type="out_of_range",
                message=f"Pay days must be between 1 and 31: {out_of_range}",
                severity="error",
            ))

        if not pay_days and draft.frequency != PayFrequency.WEEKLY:
            issues.append(ValidationIssue(
                field="pay_days",
                issue_type="missing",
                message="At least one pay day is required unless the source pays weekly",
                severity="error",
                suggested_fix="Pick the day(s) of the month you get paid",
            ))

        is_valid = not any(i.severity == "error" for i in issues)
        return is_valid, issues

    def _validate_semantic(
        self,
        draft: IncomeSourceDraft,
    ) -> tuple[bool, list[ValidationIssue]]:
        """
        Stage 2: Semantic validation.

        Assumes stage 1 passed, so name, base_amount and pay_days are usable.

        Returns: (is_valid, list_of_issues)
        """
        issues = []
        has_bounds = draft.min_expected is not None or draft.max_expected is not None

        if has_bounds and draft.type != IncomeType.VARIABLE:
            issues.append(ValidationIssue(
                field="min_expected",
                issue_type="inconsistent",
                message="Expected bounds only apply to variable income",
                severity="error",
                suggested_fix="Switch the source to variable or clear the bounds",
            ))

        for field in ("min_expected", "max_expected"):
            value = getattr(draft, field)
            if value is not None and value < 0:
                issues.append(ValidationIssue(
                    field=field,
                    issue_type="invalid_value",
                    message=f"{field} cannot be negative",
                    severity="error",
                ))

        if (
            draft.min_expected is not None
            and draft.max_expected is not None
            and draft.min_expected > draft.max_expected
        ):
            issues.append(ValidationIssue(
                field="max_expected",
                issue_type="inconsistent",
                message="Maximum expected amount is lower than the minimum",
                severity="error",
                suggested_fix="Swap the two values",
            ))
        elif draft.type == IncomeType.VARIABLE and has_bounds:
            below = draft.min_expected is not None and draft.base_amount < draft.min_expected
            above = draft.max_expected is not None and draft.base_amount > draft.max_expected
            if below or above:
                issues.append(ValidationIssue(
                    field="base_amount",
                    issue_type="out_of_range",
                    message="Base amount falls outside the expected range",
                    severity="warning",
                    suggested_fix="Use a typical month's amount as the base",
                ))

        pay_days = draft.pay_days or []
        if draft.frequency == PayFrequency.BIWEEKLY and len(set(pay_days)) < 2:
            issues.append(ValidationIssue(
                field="pay_days",
                issue_type="incomplete_schedule",
                message="Biweekly income usually has two pay days; "
                        "each payment will be half the base amount",
                severity="warning",
            ))

        if draft.frequency == PayFrequency.WEEKLY and pay_days:
            issues.append(ValidationIssue(
                field="pay_days",
                issue_type="ignored",
                message="Weekly income is projected on days 7, 14, 21 and 28; "
                        "the configured pay days are only used for the next payday",
                severity="info",
            ))

        is_valid = not any(i.severity == "error" for i in issues)
        return is_valid, issues

    def validate(self, draft: IncomeSourceDraft) -> ValidationResult:
        """
        Run full two-stage validation pipeline.

        Args:
            draft: The proposed income source

        Returns:
            ValidationResult with all issues found
        """
        all_issues = []

        # Stage 1: Schema validation
        schema_valid, schema_issues = self._validate_schema(draft)
        all_issues.extend(schema_issues)

        # Only run stage 2 if stage 1 passes
        semantic_valid = False
        if schema_valid:
            semantic_valid, semantic_issues = self._validate_semantic(draft)
            all_issues.extend(semantic_issues)

        warnings = [i.message for i in all_issues if i.severity == "warning"]

        return ValidationResult(
            schema_valid=schema_valid,
            semantic_valid=semantic_valid,
            is_valid=schema_valid and semantic_valid,
            issues=all_issues,
            warnings=warnings,
        )

    def get_user_friendly_summary(
        self,
        result: ValidationResult,
        name: Optional[str] = None,
    ) -> str:
        """
        Generate a user-friendly summary of validation results.
        """
        label = f"'{name}'" if name else "This income source"

        if result.is_valid and not result.warnings:
            return f"{label} looks good."

        lines = []

        if result.has_errors:
            lines.append(f"{label} could not be saved:")
            for issue in result.issues:
                if issue.severity == "error":
                    lines.append(f"   • {issue.message}")
                    if issue.suggested_fix:
                        lines.append(f"     {issue.suggested_fix}")

        if result.warnings:
            if lines:
                lines.append("")
            lines.append("Please double-check:")
            for warning in result.warnings:
                lines.append(f"   • {warning}")

        return "\n".join(lines)
