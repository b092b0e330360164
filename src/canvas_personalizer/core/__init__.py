"""Core configuration and constants.

Import what you need from `canvas_personalizer.core.config` and
`canvas_personalizer.core.constants` to avoid heavy side effects at import time.
"""

__all__ = ["config", "constants"]
