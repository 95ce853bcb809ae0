"""
Kindle CLI.

Usage:
    kindle boot [BASE_DIR] --kind app
    kindle hooks [BASE_DIR] --kind agent
"""

__cli_name__ = "kindle"
