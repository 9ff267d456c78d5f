"""Command cogs: meetings, notion credentials, prefix."""
