"""Pydantic Schemas — typed views of Proxmox API `data` payloads.

Invariants:
    - Schemas validate at the system boundary (every decoded response)
    - Only identity fields are required; metrics Proxmox omits for stopped guests are optional

Design Decisions:
    - Unknown fields ignored: newer Proxmox releases add fields without breaking decoding
"""
