"""
Root pytest configuration for the Django project.

Sets the environment defaults Django needs before settings are imported.
Project-wide fixtures live in app/conftest.py, app-specific ones in each
app's tests/conftest.py.
"""

import os

# Ensure Django settings are configured before any tests run
os.environ.setdefault("DJANGO_SETTINGS_MODULE", "config.settings")

# Local runs without docker-compose fall back to SQLite; CI exports a
# PostgreSQL DATABASE_URL so the concurrency suites run as well.
os.environ.setdefault("SECRET_KEY", "test-secret-key-not-for-production")
os.environ.setdefault("DATABASE_URL", "sqlite:///test-db.sqlite3")
os.environ.setdefault("STRIPE_SECRET_KEY", "sk_test_dummy")
os.environ.setdefault("KHALTI_SECRET_KEY", "test_khalti_secret")

# Tasks queued from views (webhooks, event drain) run inline without a broker
os.environ.setdefault("CELERY_TASK_ALWAYS_EAGER", "true")

# Tests exercise plain http through the test client
os.environ.setdefault("SECURE_SSL_REDIRECT", "false")
