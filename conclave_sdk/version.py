"""Package version and the default HTTP User-Agent derived from it."""

from __future__ import annotations

import platform

__version__ = "0.1.0"


def user_agent() -> str:
    return f"conclave-sdk-py/{__version__} python/{platform.python_version()}"


__all__ = ["__version__", "user_agent"]
