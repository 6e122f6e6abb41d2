"""Inventory relay collaborator: login and group/agent enumeration."""
from .client import InventoryClient  # noqa: F401
from .models import Agent, Group  # noqa: F401
