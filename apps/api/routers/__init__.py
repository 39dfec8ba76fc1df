"""Routers package."""

from . import (
    health,
    generate,
    webhooks,
    billing,
)
