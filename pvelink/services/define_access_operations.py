"""Access Operations — user accounts under /access/users.

Invariants:
    - {userid} is "name@realm", URL-quoted by Operation.build_request
    - create/update/delete run synchronously on the server: the answer carries no
      payload, and none of them is retried
"""

from pvelink.core.api_request import Operation
from pvelink.core.domain_types import HttpMethod
from pvelink.schemas.access import User

OPERATIONS_ACCESS = [
    Operation(
        name="list_users",
        method=HttpMethod.GET,
        path="/access/users",
        response_type=list[User],
        description="User accounts of every realm. Optional query `enabled`, `full`.",
    ),
    Operation(
        name="create_user",
        method=HttpMethod.POST,
        path="/access/users",
        response_type=None,
        description=(
            "Create body `userid` (optional `password`, `email`, `firstname`, "
            "`lastname`, `comment`, `enable`, `expire`, `groups`). Not retried."
        ),
    ),
    Operation(
        name="update_user",
        method=HttpMethod.PUT,
        path="/access/users/{userid}",
        response_type=None,
        description="Change account fields of one user. Not retried.",
    ),
    Operation(
        name="delete_user",
        method=HttpMethod.DELETE,
        path="/access/users/{userid}",
        response_type=None,
        description="Remove one user account. Not retried.",
    ),
]
