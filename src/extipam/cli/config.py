"""
CLI settings.

Set by the root callback in ``extipam.cli.main`` before any command runs.
"""

import os

CONFIG_PATH: str | None = os.environ.get("EXTIPAM_CONFIG")
OUTPUT_FORMAT: str = "table"
