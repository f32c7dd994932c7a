"""Operations Registry — flat, name-indexed view of every declared Operation.

Invariants:
    - Operation names are unique (checked at import)
    - get_operation() raises KeyError for unknown names, listing nothing secret

Design Decisions:
    - Explicit imports from each define_*_operations.py: no auto-discovery
"""

from pvelink.core.api_request import Operation
from pvelink.services.define_access_operations import OPERATIONS_ACCESS
from pvelink.services.define_backup_operations import OPERATIONS_BACKUP
from pvelink.services.define_cluster_operations import OPERATIONS_CLUSTER
from pvelink.services.define_guest_operations import OPERATIONS_GUEST
from pvelink.services.define_monitoring_operations import OPERATIONS_MONITORING
from pvelink.services.define_node_operations import OPERATIONS_NODE

ALL_OPERATIONS: list[Operation] = [
    *OPERATIONS_CLUSTER,     # 3 operations
    *OPERATIONS_NODE,        # 11 operations
    *OPERATIONS_GUEST,       # 2x(2 reads + power + create + migrate + delete) + 3 snapshot
    *OPERATIONS_BACKUP,      # 3 operations
    *OPERATIONS_ACCESS,      # 4 operations
    *OPERATIONS_MONITORING,  # 9 operations
]

_BY_NAME: dict[str, Operation] = {}
for _operation in ALL_OPERATIONS:
    if _operation.name in _BY_NAME:
        raise RuntimeError(f"Duplicate operation name: {_operation.name}")
    _BY_NAME[_operation.name] = _operation


def get_operation(name: str) -> Operation:
    try:
        return _BY_NAME[name]
    except KeyError:
        raise KeyError(f"Unknown operation: {name}") from None


def operation_names() -> list[str]:
    return sorted(_BY_NAME)
