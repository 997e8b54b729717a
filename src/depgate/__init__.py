"""depgate - dependency update policy and CI gate aggregation."""

__version__ = "0.1.0"
