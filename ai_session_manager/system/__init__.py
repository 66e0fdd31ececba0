"""System health reporting."""
from .status import NOT_INSTALLED, SystemStatusProvider

__all__ = ["NOT_INSTALLED", "SystemStatusProvider"]
