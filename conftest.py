import os

# Keep the services' module-level engines off Postgres during tests; every
# test binds its own SQLite database through dependency overrides.
os.environ.setdefault("DATABASE_URL", "sqlite://")
os.environ.setdefault("LOG_LEVEL", "WARNING")
