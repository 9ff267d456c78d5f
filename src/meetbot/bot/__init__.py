"""Discord layer -- bot client, command cogs and embed helpers."""
