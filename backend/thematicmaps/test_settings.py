"""
Test settings for the thematic maps backend.
Tests run against the in-memory imagery platform, never Earth Engine.
"""

import os
from .settings import *  # noqa

# Use in-memory SQLite database for faster tests
DATABASES = {
    "default": {
        "ENGINE": "django.db.backends.sqlite3",
        "NAME": ":memory:",
    }
}

# Synthetic rasters on a small grid
EARTH_ENGINE_BACKEND = "demo"
EARTH_ENGINE_PROJECT = None
EARTH_ENGINE_USE_SERVICE_ACCOUNT = False
DEMO_GRID_SIZE = 8
ANALYSIS_YEAR = 2023

# Disable logging during tests
LOGGING = {
    "version": 1,
    "disable_existing_loggers": False,
    "handlers": {
        "null": {
            "class": "logging.NullHandler",
        },
    },
    "root": {
        "handlers": ["null"],
    },
}

# Test-specific settings
DEBUG = False
SECRET_KEY = os.environ.get(
    "DJANGO_SECRET_KEY", "django-insecure-test-key-only-for-testing-purposes"
)
