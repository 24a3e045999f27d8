"""Command-line tools for ragengine."""
