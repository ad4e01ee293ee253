"""
Command-line Layer.

The Typer application, its Rich progress display, and console formatters.
"""
