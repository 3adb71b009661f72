import os
import sys
from typing import TypedDict


def _validate_secret_key(value: str) -> bool:
    return len(value) >= 32 and value != "CHANGE_THIS_TO_A_SECURE_RANDOM_KEY_IN_PRODUCTION"


def _validate_database_url(value: str) -> bool:
    return value.startswith(("postgresql+asyncpg:", "sqlite+aiosqlite:"))


def _validate_webhook_secret(value: str) -> bool:
    return len(value) >= 16


def _validate_sentry_dsn(value: str) -> bool:
    return value.startswith("https://")


def _validate_debug_setting(value: str, environment: str) -> bool:
    return value.lower() != "true" if environment == "production" else True


def _validate_threshold(value: str, environment: str) -> bool:
    if not value:
        return True
    try:
        return 0.0 <= float(value) <= 1.0
    except ValueError:
        return False


class ValidationResult(TypedDict):
    environment: str
    errors: list[str]
    warnings: list[str]
    valid: bool


class EnvironmentValidator:
    REQUIRED_SETTINGS: dict[str, dict[str, object]] = {
        "SECRET_KEY": {
            "description": "Access token verification secret",
            "validation": _validate_secret_key,
            "error": "SECRET_KEY must be at least 32 characters and changed from default",
        },
        "DATABASE_URL": {
            "description": "Database connection URL",
            "validation": _validate_database_url,
            "error": "DATABASE_URL must start with postgresql+asyncpg:// or sqlite+aiosqlite:///",
        },
    }

    PRODUCTION_REQUIRED: dict[str, dict[str, object]] = {
        "WEBHOOK_SECRET": {
            "description": "Shared secret for the signup webhook",
            "validation": _validate_webhook_secret,
            "error": "WEBHOOK_SECRET must be set (16+ characters) in production",
        },
        "SENTRY_DSN": {
            "description": "Error monitoring DSN",
            "validation": _validate_sentry_dsn,
            "error": "SENTRY_DSN should be configured for production monitoring",
        },
    }

    SECURITY_CHECKS: dict[str, dict[str, object]] = {
        "DEBUG": {
            "description": "Debug mode setting",
            "validation": _validate_debug_setting,
            "error": "DEBUG must be false in production environment",
        },
        "POLL_PROMOTION_THRESHOLD": {
            "description": "Yes share required to promote a poll",
            "validation": _validate_threshold,
            "error": "POLL_PROMOTION_THRESHOLD must be a number between 0 and 1",
        },
    }

    @classmethod
    def validate_environment(cls) -> ValidationResult:
        errors: list[str] = []
        warnings: list[str] = []
        environment = os.getenv("ENVIRONMENT", "development").lower()

        for setting, config in cls.REQUIRED_SETTINGS.items():
            value = os.getenv(setting)
            if not value:
                errors.append(f"❌ {setting} is required: {config['description']}")
                continue
            validation_func = config.get("validation")
            if callable(validation_func) and not validation_func(value):
                errors.append(f"❌ {setting}: {config['error']}")

        if environment == "production":
            for setting, config in cls.PRODUCTION_REQUIRED.items():
                value = os.getenv(setting)
                validation_func = config.get("validation")
                if not value or (
                    callable(validation_func) and not validation_func(value)
                ):
                    warnings.append(f"⚠️ {setting}: {config['error']}")

        for setting, config in cls.SECURITY_CHECKS.items():
            value = os.getenv(setting, "")
            validation_func = config.get("validation")
            if callable(validation_func) and not validation_func(value, environment):
                if environment == "production":
                    errors.append(f"❌ {setting}: {config['error']}")
                else:
                    warnings.append(f"⚠️ {setting}: {config['error']}")

        numeric_settings = {
            "RATE_LIMIT_PER_MINUTE": (1, 10000),
            "POLL_MAX_OPTIONS": (2, 50),
            "POLL_PROMOTION_INTERVAL_SECONDS": (1, 3600),
        }

        for setting, (min_val, max_val) in numeric_settings.items():
            value = os.getenv(setting)
            if value:
                try:
                    num_value = int(value)
                    if not (min_val <= num_value <= max_val):
                        warnings.append(
                            f"⚠️ {setting} should be between {min_val} and {max_val}"
                        )
                except ValueError:
                    warnings.append(f"⚠️ {setting} should be a number")

        return ValidationResult(
            environment=environment,
            errors=errors,
            warnings=warnings,
            valid=len(errors) == 0,
        )

    @classmethod
    def validate_or_exit(cls) -> None:
        skip_validation = os.getenv(
            "SKIP_CONFIG_VALIDATION", ""
        ).lower() == "true" or any("alembic" in arg for arg in sys.argv)

        if skip_validation:
            print("🔧 Skipping configuration validation for migration tool")
            return

        result = cls.validate_environment()

        print("🔧 Environment Configuration Validation")
        print("=" * 50)
        print(f"Environment: {result['environment'].upper()}")

        if result["warnings"]:
            print("\n⚠️ WARNINGS:")
            for warning in result["warnings"]:
                print(f"  {warning}")

        if result["errors"]:
            print("\n❌ CRITICAL ERRORS:")
            for error in result["errors"]:
                print(f"  {error}")

            print("\n💡 To fix these issues:")
            print("  1. Copy .env.example to .env")
            print("  2. Configure the required settings")
            print("  3. Use the same SECRET_KEY as the auth provider's JWT secret")
            print("\nApplication cannot start with configuration errors.")
            sys.exit(1)

        print("✅ Configuration valid")
