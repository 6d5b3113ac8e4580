"""
Earth Engine configuration for the thematic maps application.

Handles authentication and initialization, either with a service account key
(a file path, inline JSON or base64-encoded JSON) or with the default
credentials of the environment.
"""

import base64
import json
import logging
import os
from pathlib import Path

import ee
from django.conf import settings

logger = logging.getLogger(__name__)

# Global flag to track initialization status
_ee_initialized = False


def _resolve_key_file():
    """
    Locate the service account key, materializing inline or base64 JSON into
    BASE_DIR/auth/service_account.json.

    Returns:
        Path or None: key file location, None when nothing is configured
    """
    key_setting = getattr(settings, "EARTH_ENGINE_SERVICE_ACCOUNT_KEY", None)
    key_base64 = getattr(settings, "EARTH_ENGINE_SERVICE_ACCOUNT_KEY_BASE64", None)
    key_data = None

    if key_base64:
        try:
            key_data = json.loads(base64.b64decode(key_base64).decode("utf-8"))
        except (ValueError, UnicodeDecodeError) as e:
            logger.warning(f"Failed to decode base64 service account key: {e}")

    if key_data is None and isinstance(key_setting, str) and key_setting.strip().startswith("{"):
        try:
            key_data = json.loads(key_setting)
        except json.JSONDecodeError as e:
            logger.warning(f"Failed to parse service account key as JSON: {e}")

    if key_data is not None:
        key_file = Path(settings.BASE_DIR) / "auth" / "service_account.json"
        key_file.parent.mkdir(parents=True, exist_ok=True)
        with open(key_file, "w") as f:
            json.dump(key_data, f)
        logger.info(f"Wrote service account key file to {key_file}")
        return key_file

    if isinstance(key_setting, str) and key_setting:
        if os.path.isabs(key_setting):
            return Path(key_setting)
        return Path(settings.BASE_DIR) / key_setting
    return None


def initialize_earth_engine():
    """
    Initialize Earth Engine once per process.

    Returns:
        bool: True if initialization successful, False otherwise
    """
    global _ee_initialized

    if _ee_initialized:
        return True

    project_id = get_project_id()
    use_service_account = getattr(settings, "EARTH_ENGINE_USE_SERVICE_ACCOUNT", False)

    try:
        if use_service_account:
            key_file = _resolve_key_file()
            if key_file is not None and key_file.exists():
                credentials = ee.ServiceAccountCredentials(email=None, key_file=str(key_file))
                ee.Initialize(credentials, project=project_id)
                logger.info(f"Earth Engine initialized with service account for project: {project_id}")
                _ee_initialized = True
                return True
            logger.warning(f"Service account key file not found: {key_file}")
            logger.info("Falling back to default authentication...")

        ee.Initialize(project=project_id)
        logger.info(f"Earth Engine initialized with default authentication for project: {project_id}")
        _ee_initialized = True
        return True
    except Exception as e:
        logger.error(f"Failed to initialize Earth Engine: {str(e)}")
        return False


def get_project_id():
    return getattr(settings, "EARTH_ENGINE_PROJECT", None)


def is_initialized():
    return _ee_initialized


def get_authentication_info():
    """
    Describe the configured Earth Engine backend and authentication.

    Returns:
        dict: Authentication information
    """
    use_service_account = getattr(settings, "EARTH_ENGINE_USE_SERVICE_ACCOUNT", False)
    key_setting = getattr(settings, "EARTH_ENGINE_SERVICE_ACCOUNT_KEY", None)
    key_base64 = getattr(settings, "EARTH_ENGINE_SERVICE_ACCOUNT_KEY_BASE64", None)

    service_account_available = bool(key_base64)
    if not service_account_available and isinstance(key_setting, str) and key_setting:
        if key_setting.strip().startswith("{"):
            service_account_available = True
        else:
            path = Path(key_setting)
            if not path.is_absolute():
                path = Path(settings.BASE_DIR) / key_setting
            service_account_available = path.exists()

    return {
        "backend": getattr(settings, "EARTH_ENGINE_BACKEND", "earthengine"),
        "project_id": get_project_id(),
        "initialized": is_initialized(),
        "authentication_method": (
            "Service Account" if use_service_account and service_account_available else "Default"
        ),
        "service_account_configured": use_service_account,
        "service_account_available": service_account_available,
    }
