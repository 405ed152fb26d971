# src/cantorx/adapters/__init__.py
"""
Adapters Layer - External Interfaces

This package contains all adapters for external systems:
- Crawlers (cantor rate pages)
- Persistence (SQL store, stream log)
- Cache (hot cache and update bus)
- Wire (protobuf schema and codec)
- Web (REST and RPC apps)
"""

__all__ = []
