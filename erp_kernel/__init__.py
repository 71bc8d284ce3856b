"""
ERP Kernel

Shared foundation for the marine-operations inventory and procurement core:
- Typed exceptions with machine-readable codes
- Structured JSON logging
- Settings loading (YAML + environment)
- Database engine, sessions and declarative base
- Injectable clock and workflow state-machine types
"""

__version__ = "0.1.0"
