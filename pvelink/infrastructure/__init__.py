"""Infrastructure Layer — sockets, TLS and HTTP, plus logging setup.

Invariants:
    - Infrastructure never imports from services/
    - Every external call is bounded by a timeout and mapped to a pvelink error
"""
