"""
GST Kernel

Shared foundation for the GST rate resolution and computation engines:
- Domain enums and decimal precision helpers
- Typed exception hierarchy with machine-readable codes
- Structured JSON logging
- Read-only persistence lookups for HSN codes and rate records
"""

__version__ = "0.1.0"
