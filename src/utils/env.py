"""
Secret lookup.

Secrets come from the environment, or from a file named by <NAME>_FILE
(docker/k8s secret mounts).
"""

import os
from typing import Optional


def read_secret(name: str, default: Optional[str] = None) -> Optional[str]:
    value = os.environ.get(name)
    if value:
        return value.strip()

    path = os.environ.get(f"{name}_FILE")
    if path and os.path.isfile(path):
        with open(path, "r") as f:
            return f.read().strip()

    return default
