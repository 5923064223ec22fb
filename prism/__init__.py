"""Building blocks for a Terraform execution platform: models, data access, locks, parsing and messaging."""

__version__ = "0.1.0"