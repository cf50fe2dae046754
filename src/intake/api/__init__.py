"""HTTP surface: intake, recovery trigger, circuit status, health."""

from intake.api.app import create_app

__all__ = ["create_app"]
