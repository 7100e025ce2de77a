"""
Pre-Flight Configuration Validator

Validates the competition configuration before the service starts serving.
Catches a missing or inverted competition window, an unknown ranking
algorithm, missing algorithm parameters and malformed URLs at startup
instead of discovering them on the first refresh.
"""

from dataclasses import dataclass, field
from pathlib import Path
from typing import Optional

from services.errors import ConfigurationError
from services.strategies import resolve_strategy
from utils.logger import get_logger

logger = get_logger("config_validator")

SNAPSHOT_BACKENDS = ("file", "database")


@dataclass
class ValidationResult:
    valid: bool
    errors: list[str] = field(default_factory=list)
    warnings: list[str] = field(default_factory=list)
    checks_passed: int = 0
    checks_failed: int = 0
    checks_warned: int = 0


class ConfigValidator:
    """Validates configuration parameters before the refresh loop starts."""

    def validate_all(self, settings) -> ValidationResult:
        """Run all validation checks against settings object."""
        result = ValidationResult(valid=True)

        # Competition window
        start = settings.COMPETITION_START_TIME
        end = settings.COMPETITION_END_TIME
        self._check_required(result, "COMPETITION_START_TIME", start)
        self._check_required(result, "COMPETITION_END_TIME", end)
        if start is not None and end is not None:
            if end < start:
                self._add_error(result, "COMPETITION_END_TIME must not be before COMPETITION_START_TIME")
            else:
                result.checks_passed += 1

        # Timing
        self._check_positive(result, "POLL_INTERVAL_SECONDS", settings.POLL_INTERVAL_SECONDS)
        self._check_positive(result, "API_TIMEOUT_SECONDS", settings.API_TIMEOUT_SECONDS)
        self._check_positive(
            result, "GRACEFUL_SHUTDOWN_TIMEOUT_SECONDS", settings.GRACEFUL_SHUTDOWN_TIMEOUT_SECONDS
        )
        self._check_range(result, "MAX_RETRY_ATTEMPTS", settings.MAX_RETRY_ATTEMPTS, 1, 10)

        # Ranking algorithm
        self._check_algorithm(result, settings.ALGORITHM, settings.ALGORITHM_CONFIG)

        # External services
        self._check_url(result, "SOCIAL_URL", settings.SOCIAL_URL)
        self._check_url(result, "DATA_NODE_GRAPHQL_URL", settings.DATA_NODE_GRAPHQL_URL)

        # Display metadata
        if not settings.HEADERS:
            self._add_error(result, "HEADERS must list at least one column header")
        else:
            result.checks_passed += 1
        if not settings.DESCRIPTION:
            self._add_warning(result, "DESCRIPTION is empty")

        excluded_file = settings.EXCLUDED_PARTIES_FILE
        if excluded_file:
            if Path(excluded_file).is_file():
                result.checks_passed += 1
            else:
                self._add_error(result, f"EXCLUDED_PARTIES_FILE not found: {excluded_file}")
        elif not settings.BLACKLIST:
            self._add_warning(result, "BLACKLIST is empty - every verified party is public")

        # Snapshots
        if settings.SNAPSHOT_BACKEND not in SNAPSHOT_BACKENDS:
            self._add_error(
                result,
                f"SNAPSHOT_BACKEND must be one of {', '.join(SNAPSHOT_BACKENDS)} (got: {settings.SNAPSHOT_BACKEND})",
            )
        elif settings.SNAPSHOT_BACKEND == "database":
            self._check_required(result, "DATABASE_URL", settings.DATABASE_URL)
        else:
            self._check_required(result, "SNAPSHOT_DIR", settings.SNAPSHOT_DIR)

        result.valid = len(result.errors) == 0

        log_method = logger.info if result.valid else logger.error
        log_method(
            "Config validation complete",
            valid=result.valid,
            passed=result.checks_passed,
            failed=result.checks_failed,
            warnings=result.checks_warned,
        )

        return result

    # --- Validation helpers ---

    def _check_algorithm(self, result: ValidationResult, algorithm: str, params: dict):
        if not algorithm:
            self._add_error(result, "ALGORITHM is required")
            return
        try:
            resolve_strategy(algorithm, params)
        except ConfigurationError as e:
            self._add_error(result, str(e))
        else:
            result.checks_passed += 1

    def _check_url(self, result: ValidationResult, name: str, value: str):
        if not value:
            self._add_error(result, f"{name} is required")
        elif not value.startswith(("http://", "https://")):
            self._add_error(result, f"{name} must be a valid URL (got: {value})")
        else:
            result.checks_passed += 1

    def _check_range(self, result: ValidationResult, name: str, value, min_val, max_val):
        if value < min_val or value > max_val:
            self._add_error(result, f"{name}={value} out of range [{min_val}, {max_val}]")
        else:
            result.checks_passed += 1

    def _check_positive(self, result: ValidationResult, name: str, value):
        if value is None or value <= 0:
            self._add_error(result, f"{name} must be positive (got: {value})")
        else:
            result.checks_passed += 1

    def _check_required(self, result: ValidationResult, name: str, value: Optional[object]):
        if value is None or value == "":
            self._add_error(result, f"{name} is required")
        else:
            result.checks_passed += 1

    def _add_error(self, result: ValidationResult, msg: str):
        result.errors.append(msg)
        result.checks_failed += 1
        logger.error(f"Validation FAILED: {msg}")

    def _add_warning(self, result: ValidationResult, msg: str):
        result.warnings.append(msg)
        result.checks_warned += 1
        logger.warning(f"Validation WARNING: {msg}")


config_validator = ConfigValidator()
