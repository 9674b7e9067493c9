"""Service layer for the migration engine."""

from .type_mapper import map_type
from .provisioner import TableProvisioner, ProvisionResult
from .copier import BatchCopier

__all__ = [
    "map_type",
    "TableProvisioner",
    "ProvisionResult",
    "BatchCopier",
]
