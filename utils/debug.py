"""Development-only diagnostic output."""

from datetime import datetime
from typing import Optional

import config as cfg


def debug_log(message: str, tag: Optional[str] = None):
    """Print a timestamped debug line, only in the development environment."""
    if cfg.ENVIRONMENT != "development":
        return
    stamp = datetime.now().strftime("%H:%M:%S.%f")[:-3]
    if tag:
        print(f"{stamp} [{tag}] {message}")
    else:
        print(f"{stamp} {message}")
