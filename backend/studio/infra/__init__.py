"""Infrastructure adapters: Postgres, Redis, auth and the in-memory store."""
