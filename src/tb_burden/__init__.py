"""Country-level tuberculosis burden analysis."""

__version__ = "0.1.0"
