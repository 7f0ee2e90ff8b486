"""LeadFlow: tenant-aware lead pipeline state machine engine."""

__version__ = "1.0.0"
