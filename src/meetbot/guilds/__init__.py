"""Per-guild settings -- prefix and Notion credentials, persisted with SQLAlchemy."""
