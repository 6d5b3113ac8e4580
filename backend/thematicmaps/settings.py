"""
Django settings for thematicmaps project.
"""

import environ
from pathlib import Path

# Build paths inside the project
BASE_DIR = Path(__file__).resolve().parent.parent

# Environment variables
env = environ.Env(DEBUG=(bool, False))

# Take environment variables from .env file
environ.Env.read_env(BASE_DIR / ".env")

# SECURITY WARNING: keep the secret key used in production secret!
SECRET_KEY = env("SECRET_KEY", default="django-insecure-change-me-in-production")

# SECURITY WARNING: don't run with debug turned on in production!
DEBUG = env("DEBUG", default=False)

ALLOWED_HOSTS = env.list("ALLOWED_HOSTS", default=["localhost", "127.0.0.1"])

# Application definition
DJANGO_APPS = [
    "django.contrib.auth",
    "django.contrib.contenttypes",
    "django.contrib.staticfiles",
]

THIRD_PARTY_APPS = [
    "rest_framework",
    "corsheaders",
    "drf_spectacular",
]

LOCAL_APPS = [
    "apps.analysis",
    "apps.earth_engine",
    "apps.visualization",
]

INSTALLED_APPS = DJANGO_APPS + THIRD_PARTY_APPS + LOCAL_APPS

MIDDLEWARE = [
    "corsheaders.middleware.CorsMiddleware",
    "django.middleware.security.SecurityMiddleware",
    "django.middleware.common.CommonMiddleware",
    "django.middleware.clickjacking.XFrameOptionsMiddleware",
]

ROOT_URLCONF = "thematicmaps.urls"

TEMPLATES = [
    {
        "BACKEND": "django.template.backends.django.DjangoTemplates",
        "DIRS": [],
        "APP_DIRS": True,
        "OPTIONS": {
            "context_processors": [
                "django.template.context_processors.debug",
                "django.template.context_processors.request",
            ],
        },
    },
]

WSGI_APPLICATION = "thematicmaps.wsgi.application"

# Nothing is persisted; the database only satisfies contrib.auth
DATABASES = {
    "default": {
        "ENGINE": "django.db.backends.sqlite3",
        "NAME": BASE_DIR / "db.sqlite3",
    }
}

# Internationalization
LANGUAGE_CODE = "en-us"
TIME_ZONE = "UTC"
USE_I18N = True
USE_TZ = True

# Static files (CSS, JavaScript, Images)
STATIC_URL = "/static/"
STATIC_ROOT = BASE_DIR / "staticfiles"

# Default primary key field type
DEFAULT_AUTO_FIELD = "django.db.models.BigAutoField"

# REST Framework configuration
REST_FRAMEWORK = {
    "DEFAULT_AUTHENTICATION_CLASSES": [],
    "DEFAULT_PERMISSION_CLASSES": [
        "rest_framework.permissions.AllowAny",
    ],
    "DEFAULT_RENDERER_CLASSES": [
        "rest_framework.renderers.JSONRenderer",
    ],
    "UNAUTHENTICATED_USER": None,
    "DEFAULT_SCHEMA_CLASS": "drf_spectacular.openapi.AutoSchema",
}

# API Documentation
SPECTACULAR_SETTINGS = {
    "TITLE": "Thematic Maps API",
    "DESCRIPTION": "Land cover, elevation, precipitation, NDVI and land surface temperature "
                   "maps and statistics for a study area, computed with Earth Engine",
    "VERSION": "1.0.0",
    "SERVE_INCLUDE_SCHEMA": False,
    "SCHEMA_PATH_PREFIX": "/api/v1/",
    "COMPONENT_SPLIT_REQUEST": True,
    "SORT_OPERATIONS": False,
    "SWAGGER_UI_SETTINGS": {
        "deepLinking": True,
        "displayOperationId": True,
        "filter": True,
    },
    "TAGS": [
        {
            "name": "Analysis",
            "description": "Run thematic products over the study area",
        },
        {
            "name": "Earth Engine",
            "description": "Google Earth Engine integration endpoints",
        },
        {
            "name": "Visualization",
            "description": "Maps and charts of product results",
        },
    ],
}

# Earth Engine Configuration
EARTH_ENGINE_SERVICE_ACCOUNT_KEY = env("EARTH_ENGINE_SERVICE_ACCOUNT_KEY", default=None)
EARTH_ENGINE_SERVICE_ACCOUNT_KEY_BASE64 = env("EARTH_ENGINE_SERVICE_ACCOUNT_KEY_BASE64", default=None)
EARTH_ENGINE_PROJECT = env("EARTH_ENGINE_PROJECT", default=None)
EARTH_ENGINE_USE_SERVICE_ACCOUNT = env(
    "EARTH_ENGINE_USE_SERVICE_ACCOUNT", default=False, cast=bool
)
# "earthengine" or "demo" (synthetic rasters, no Earth Engine account)
EARTH_ENGINE_BACKEND = env("EARTH_ENGINE_BACKEND", default="earthengine")

# Study area and pipeline parameters
STUDY_AREA = {
    "center_lat": env.float("STUDY_AREA_LAT", default=18.5941667),
    "center_lon": env.float("STUDY_AREA_LON", default=73.3675),
    "radius_m": env.float("STUDY_AREA_RADIUS_M", default=5000.0),
    "zoom": env.int("STUDY_AREA_ZOOM", default=12),
}
ANALYSIS_YEAR = env.int("ANALYSIS_YEAR", default=2023)
PIPELINE_MAX_PIXELS = env.float("PIPELINE_MAX_PIXELS", default=1e9)
PIPELINE_WORKERS = env.int("PIPELINE_WORKERS", default=4)
DEMO_GRID_SIZE = env.int("DEMO_GRID_SIZE", default=32)

# CORS configuration
CORS_ALLOWED_ORIGINS = env.list(
    "CORS_ALLOWED_ORIGINS",
    default=[
        "http://localhost:3000",   # React development server
        "http://127.0.0.1:3000",   # Alternative localhost
    ]
)
CORS_ALLOW_ALL_ORIGINS = False
CORS_ALLOW_METHODS = [
    'GET',
    'OPTIONS',
    'POST',
]

# Logging
# Development: INFO level shows all details
# Production: WARNING level only shows warnings and errors
LOG_LEVEL = env("LOG_LEVEL", default="WARNING" if not DEBUG else "INFO")

LOGGING = {
    "version": 1,
    "disable_existing_loggers": False,
    "formatters": {
        "verbose": {
            "format": "{levelname} {asctime} {module} {message}",
            "style": "{",
        },
        "simple": {
            "format": "{levelname} {message}",
            "style": "{",
        },
    },
    "handlers": {
        "console": {
            "level": LOG_LEVEL,
            "class": "logging.StreamHandler",
            "formatter": "simple" if not DEBUG else "verbose",
        },
    },
    "root": {
        "handlers": ["console"],
        "level": LOG_LEVEL,
    },
    "loggers": {
        "django": {
            "handlers": ["console"],
            "level": "WARNING" if not DEBUG else "INFO",
            "propagate": False,
        },
        "apps": {
            "handlers": ["console"],
            "level": LOG_LEVEL,
            "propagate": False,
        },
        "django.request": {
            "handlers": ["console"],
            "level": "ERROR",  # Only log request errors
            "propagate": False,
        },
    },
}

# Security Headers
SECURE_CONTENT_TYPE_NOSNIFF = True
SECURE_PROXY_SSL_HEADER = ('HTTP_X_FORWARDED_PROTO', 'https')
X_FRAME_OPTIONS = 'SAMEORIGIN'
SECURE_REFERRER_POLICY = 'strict-origin-when-cross-origin'
