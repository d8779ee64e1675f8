"""
FX Kernel

Shared foundation for the FX back-office settlement core:
- Typed exceptions with machine-readable codes
- Structured JSON logging with request-scoped context
- SQLAlchemy declarative base and session management
- Injectable clock and declarative workflow types
"""

__version__ = "0.1.0"
