"""
SLA Kernel

Service-record lifecycle core for field-service maintenance contracts:
- Contract and checklist persistence
- Category-driven execution procedures
- Role capabilities
- Structured logging and typed errors
"""

__version__ = "0.1.0"
