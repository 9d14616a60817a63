"""Command-line entry point for the Kroki preprocessor."""
