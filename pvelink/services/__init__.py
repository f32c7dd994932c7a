"""Services Layer — session lifecycle and the typed operation surface.

Invariants:
    - Services depend on infrastructure through the TransportClient only
"""
