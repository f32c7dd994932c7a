"""pvelink — secure async client core for the Proxmox VE REST API.

Invariants:
    - Package root contains no executable code (import side-effects prohibited)

Design Decisions:
    - Explicit imports only, e.g. `from pvelink.client import ProxmoxClient`
"""

__version__ = "0.1.0"
