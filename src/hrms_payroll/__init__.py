"""Multi-tenant payroll core: tax, statutory contributions, payroll processing."""

__version__ = "0.1.0"
