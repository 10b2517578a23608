"""CLI subcommands, each exposing register(app)."""
