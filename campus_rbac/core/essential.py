"""Essential Permission Set: baseline grants injected into every new role."""

from dataclasses import dataclass
from typing import Iterable, Optional, Tuple

from campus_rbac.core.config import Settings, settings as default_settings


@dataclass(frozen=True)
class EssentialPermissionSet:
    """Versioned list of permission names every defined role must carry.

    Review this whenever a cross-cutting feature needs a new baseline
    grant; bump ``version`` when the list changes.
    """

    names: Tuple[str, ...]
    version: int = 1

    @classmethod
    def of(cls, names: Iterable[str], version: int = 1) -> "EssentialPermissionSet":
        # dedupe but keep configured order
        return cls(names=tuple(dict.fromkeys(names)), version=version)

    def __iter__(self):
        return iter(self.names)

    def __len__(self) -> int:
        return len(self.names)


def get_essential_permissions(config: Optional[Settings] = None) -> EssentialPermissionSet:
    """Build the essential set from deployment settings."""
    config = config or default_settings
    return EssentialPermissionSet.of(
        config.ESSENTIAL_PERMISSIONS, config.ESSENTIAL_PERMISSIONS_VERSION,
    )
