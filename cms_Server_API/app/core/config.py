# config.py
# Description: Configuration settings for the site CMS server.
#
# Imports
import os
from pathlib import Path
from typing import Optional, List
#
# 3rd-party Libraries
from loguru import logger
#
# Local Imports
#
########################################################################################################################
#
# Functions:

# --- Development defaults (never acceptable in production) ---
DEFAULT_ADMIN_USER = "admin"
DEFAULT_ADMIN_PASS = "admin-dev-password"
DEFAULT_JWT_SECRET = "local-admin-secret"

# --- Clamps ---
ADMIN_SESSION_TTL_MIN_MINUTES = 15
ADMIN_SESSION_TTL_MAX_MINUTES = 720
SHARE_CODE_MIN_LENGTH = 3
SHARE_CODE_MAX_LENGTH = 8


def _env_first(*names: str, default: str = "") -> str:
    """Returns the first non-empty environment variable among `names`."""
    for name in names:
        value = os.getenv(name)
        if value:
            return value
    return default


def _positive_int(raw: Optional[str], default: int) -> int:
    try:
        value = int(raw) if raw is not None else default
    except (TypeError, ValueError):
        logger.warning(f"Ignoring non-numeric configuration value '{raw}', using {default}")
        return default
    return value if value > 0 else default


def _flag(raw: Optional[str], default: bool) -> bool:
    if raw is None:
        return default
    return raw.strip().lower() == "true"


def _collect_env_issues(is_production: bool, admin_user: str, admin_pass: str, jwt_secret: str,
                        credentials_from_env: bool, secret_from_env: bool) -> List[str]:
    issues: List[str] = []
    if not is_production:
        return issues
    if not credentials_from_env:
        issues.append("ADMIN_USER/ADMIN_PASS are not set")
    if admin_user == DEFAULT_ADMIN_USER or admin_pass == DEFAULT_ADMIN_PASS:
        issues.append("default admin credentials are not allowed")
    if not secret_from_env or jwt_secret == DEFAULT_JWT_SECRET:
        issues.append("JWT_SECRET is not set to a strong value")
    return issues


def load_settings():
    """Loads all settings from environment variables or defaults into a dictionary."""

    is_production = os.getenv("APP_ENV", "development").lower() == "production"

    # --- Collection files ---
    content_store_dir = Path(os.getenv("ADMIN_FILE_STORE_DIR", "./data/admin")).resolve()
    share_links_file = Path(os.getenv("SHARE_LINKS_FILE", str(content_store_dir / "share-links.json"))).resolve()
    share_links_legacy_file = Path(os.getenv("SHARE_LINKS_LEGACY_FILE", "./data/share-links.json")).resolve()

    # --- Remote sync (Git Data API) ---
    github_token = _env_first("ADMIN_GITHUB_TOKEN", "GITHUB_TOKEN", "GH_TOKEN")
    owner, name = os.getenv("RAILWAY_GIT_REPO_OWNER"), os.getenv("RAILWAY_GIT_REPO_NAME")
    github_repo = os.getenv("ADMIN_GITHUB_REPO") or (f"{owner}/{name}" if owner and name else "")
    github_sync_enabled = _flag(os.getenv("ADMIN_GITHUB_SYNC"), bool(github_token and github_repo))
    sync_debounce_seconds = _positive_int(os.getenv("ADMIN_SYNC_DEBOUNCE_MS"), 800) / 1000
    sync_max_retries = _positive_int(os.getenv("ADMIN_SYNC_MAX_RETRIES"), 3)

    # --- History ledger retention (0 keeps everything) ---
    try:
        history_max_entries = max(0, int(os.getenv("PACKAGE_HISTORY_MAX_ENTRIES", "0")))
    except ValueError:
        history_max_entries = 0

    # --- Admin session ---
    admin_user = os.getenv("ADMIN_USER") or DEFAULT_ADMIN_USER
    admin_pass = os.getenv("ADMIN_PASS") or DEFAULT_ADMIN_PASS
    jwt_secret = os.getenv("JWT_SECRET") or DEFAULT_JWT_SECRET
    ttl_minutes = _positive_int(os.getenv("ADMIN_SESSION_TTL_MINUTES"), 120)
    ttl_minutes = min(max(ttl_minutes, ADMIN_SESSION_TTL_MIN_MINUTES), ADMIN_SESSION_TTL_MAX_MINUTES)

    # --- Login rate limiting ---
    login_window_seconds = _positive_int(os.getenv("ADMIN_LOGIN_WINDOW_MS"), 600_000) / 1000
    login_max_attempts = _positive_int(os.getenv("ADMIN_LOGIN_MAX_ATTEMPTS"), 5)
    login_block_seconds = _positive_int(os.getenv("ADMIN_LOGIN_BLOCK_MS"), 1_800_000) / 1000

    # --- Share codes ---
    share_code_length = _positive_int(os.getenv("SHARE_CODE_LENGTH"), 4)
    share_code_length = min(max(share_code_length, SHARE_CODE_MIN_LENGTH), SHARE_CODE_MAX_LENGTH)

    env_issues = _collect_env_issues(
        is_production, admin_user, admin_pass, jwt_secret,
        credentials_from_env=bool(os.getenv("ADMIN_USER") and os.getenv("ADMIN_PASS")),
        secret_from_env=bool(os.getenv("JWT_SECRET")),
    )

    # --- Build the Settings Dictionary ---
    config_dict = {
        # General App
        "IS_PRODUCTION": is_production,
        "LOG_LEVEL": os.getenv("LOG_LEVEL", "INFO").upper(),

        # Collections
        "CONTENT_STORE_DIR": content_store_dir,
        "SHARE_LINKS_FILE": share_links_file,
        "SHARE_LINKS_LEGACY_FILE": share_links_legacy_file,
        "HISTORY_MAX_ENTRIES": history_max_entries,

        # Remote sync
        "GITHUB_TOKEN": github_token,
        "GITHUB_REPO": github_repo,
        "GITHUB_BRANCH": os.getenv("ADMIN_GITHUB_BRANCH", "main"),
        "GITHUB_PATH": os.getenv("ADMIN_GITHUB_PATH", "data/admin"),
        "GITHUB_SYNC_ENABLED": github_sync_enabled,
        "SYNC_DEBOUNCE_SECONDS": sync_debounce_seconds,
        "SYNC_MAX_RETRIES": sync_max_retries,

        # Admin session
        "ADMIN_USER": admin_user,
        "ADMIN_PASS": admin_pass,
        "JWT_SECRET": jwt_secret,
        "ADMIN_SESSION_TTL_MINUTES": ttl_minutes,
        "ADMIN_REQUIRE_HTTPS": _flag(os.getenv("ADMIN_REQUIRE_HTTPS"), True),
        "ADMIN_LOGIN_DISABLED": _flag(os.getenv("ADMIN_LOGIN_DISABLED"), False),
        "ADMIN_ENV_ISSUES": env_issues,

        # Login rate limiting
        "ADMIN_LOGIN_WINDOW_SECONDS": login_window_seconds,
        "ADMIN_LOGIN_MAX_ATTEMPTS": login_max_attempts,
        "ADMIN_LOGIN_BLOCK_SECONDS": login_block_seconds,

        # Share links
        "SHARE_CODE_LENGTH": share_code_length,
        "SHARE_CODE_PREFIX": os.getenv("SHARE_CODE_PREFIX", "share"),
        "SHARE_LINK_ISSUER": os.getenv("SHARE_LINK_ISSUER", "site-cms"),
    }

    if jwt_secret == DEFAULT_JWT_SECRET:
        logger.warning("!!! SECURITY WARNING: Using default JWT_SECRET. Set a strong JWT_SECRET for production! !!!")
    if env_issues:
        logger.warning(f"[Admin] Insecure configuration: {', '.join(env_issues)}")

    return config_dict


# --- Global Settings Object ---
# Load the settings when the module is imported
settings = load_settings()

#
# End of config.py
########################################################################################################################
