"""Command line interface for feature-loader."""
