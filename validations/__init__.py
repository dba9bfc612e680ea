from .automation_validator import (
    InvalidAutomationError,
    UnknownRegistryTypeError,
    parse_and_validate_automation,
    parse_automation_json,
)

__all__ = [
    "InvalidAutomationError",
    "UnknownRegistryTypeError",
    "parse_and_validate_automation",
    "parse_automation_json",
]
