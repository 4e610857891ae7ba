import os

# Tests never reach a real database or Stripe; keep settings independent of a local .env.
os.environ.setdefault("DATABASE_URL", "sqlite://")
os.environ.setdefault("APP_ENV", "dev")
