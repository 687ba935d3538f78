import os
from pathlib import Path

BASE_DIR = Path(__file__).resolve().parent.parent

SECRET_KEY = os.environ.get("DJANGO_SECRET_KEY", "insecure-dev-key")
DEBUG = os.environ.get("DJANGO_DEBUG", "1") == "1"
ALLOWED_HOSTS = os.environ.get("DJANGO_ALLOWED_HOSTS", "localhost,127.0.0.1,testserver").split(",")

INSTALLED_APPS = [
    "django.contrib.admin",
    "django.contrib.auth",
    "django.contrib.contenttypes",
    "django.contrib.sessions",
    "django.contrib.messages",
    "content_app",
]

MIDDLEWARE = [
    "django.middleware.security.SecurityMiddleware",
    "django.contrib.sessions.middleware.SessionMiddleware",
    "django.middleware.common.CommonMiddleware",
    "django.middleware.csrf.CsrfViewMiddleware",
    "django.contrib.auth.middleware.AuthenticationMiddleware",
    "django.contrib.messages.middleware.MessageMiddleware",
]

ROOT_URLCONF = "django_core.urls"

TEMPLATES = [
    {
        "BACKEND": "django.template.backends.django.DjangoTemplates",
        "DIRS": [],
        "APP_DIRS": True,
        "OPTIONS": {
            "context_processors": [
                "django.template.context_processors.request",
                "django.contrib.auth.context_processors.auth",
                "django.contrib.messages.context_processors.messages",
            ],
        },
    },
]

DATABASES = {
    "default": {
        "ENGINE": "django.db.backends.sqlite3",
        "NAME": BASE_DIR / "db.sqlite3",
    }
}

DEFAULT_AUTO_FIELD = "django.db.models.BigAutoField"
USE_TZ = True

# Repository the content editor works on. Keys match content_app.config.RepoConfig.
CONTENT_REPOSITORY = {
    "owner": os.environ.get("CONTENT_GIT_OWNER", "local"),
    "repo": os.environ.get("CONTENT_GIT_REPO", "site"),
    "branch": os.environ.get("CONTENT_GIT_BRANCH", "main"),
    "content_dir": os.environ.get("CONTENT_GIT_CONTENT_DIR", "src/content/blog"),
    "image_root": os.environ.get("CONTENT_GIT_IMAGE_ROOT", "public/images"),
    "token": os.environ.get("GITHUB_TOKEN"),
}

# "github" talks to the GitHub API, "local" to the objects pushed to this server.
CONTENT_STORE_BACKEND = os.environ.get("CONTENT_STORE_BACKEND", "local")

LOGGING = {
    "version": 1,
    "disable_existing_loggers": False,
    "formatters": {
        "simple": {"format": "%(asctime)s %(levelname)s %(name)s: %(message)s"},
    },
    "handlers": {
        "console": {"class": "logging.StreamHandler", "formatter": "simple"},
    },
    "loggers": {
        "content_app": {
            "handlers": ["console"],
            "level": os.environ.get("CONTENT_GIT_LOG_LEVEL", "INFO"),
        },
    },
}
