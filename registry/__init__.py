"""Registries of the trigger, condition-operator, action and step types an automation may use."""

from .defaults import create_default_registries
from .registry import Registry, RegistryItem

__all__ = ["Registry", "RegistryItem", "create_default_registries"]
