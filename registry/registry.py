from dataclasses import dataclass, field
from typing import Dict, Iterable, Optional, Type

from pydantic import BaseModel


@dataclass
class RegistryItem:
    type: str
    description: str
    config_model: Optional[Type[BaseModel]] = None


@dataclass
class Registry:
    name: str
    items: Dict[str, RegistryItem] = field(default_factory=dict)

    def register(
        self,
        type_name: str,
        description: str,
        config_model: Optional[Type[BaseModel]] = None,
    ) -> None:
        self.items[type_name] = RegistryItem(type=type_name, description=description, config_model=config_model)

    def get(self, type_name: str) -> RegistryItem | None:
        return self.items.get(type_name)

    def __contains__(self, type_name: str) -> bool:
        return type_name in self.items

    def all(self) -> Iterable[RegistryItem]:
        return self.items.values()
