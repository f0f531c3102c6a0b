import os


def _get_resource_by_env_var(env_var: str) -> str:
    table_name = os.environ.get(env_var)
    if not table_name:
        raise ValueError(f"Missing environment variable: {env_var}")
    return table_name


def get_user_profile_table_name() -> str:
    return _get_resource_by_env_var("USER_PROFILE_TABLE_NAME")


def get_training_sessions_table_name() -> str:
    return _get_resource_by_env_var("TRAINING_SESSIONS_TABLE_NAME")


def get_modules_table_name() -> str:
    return _get_resource_by_env_var("MODULES_TABLE_NAME")


def get_secrets_table_name() -> str:
    return _get_resource_by_env_var("SECRETS_TABLE_NAME")


def get_admin_hospital_numbers() -> frozenset[str]:
    """
    Hospital numbers that are always treated as QA Admin, even without a stored profile.
    Read from a comma-separated ADMIN_HOSPITAL_NUMBERS. Defaults to no bypass accounts.
    """
    value = os.environ.get("ADMIN_HOSPITAL_NUMBERS", "")
    return frozenset(part.strip() for part in value.split(",") if part.strip())


def get_allowed_origins() -> frozenset[str]:
    """CORS origins from a comma-separated ALLOWED_ORIGINS. Empty means any origin."""
    value = os.environ.get("ALLOWED_ORIGINS", "")
    return frozenset(part.strip() for part in value.split(",") if part.strip())
