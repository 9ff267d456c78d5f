"""Notion API access -- page client, typed property values, error taxonomy."""
