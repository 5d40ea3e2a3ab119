"""CLI tools for ignite-store."""
