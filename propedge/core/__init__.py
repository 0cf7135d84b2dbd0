"""Core mathematics and configuration for the PropEdge pricing framework.

This package contains pure, sport-agnostic building blocks:

- ``odds_math``      — American / decimal / probability conversion
- ``devig``          — no-vig fair probabilities from one- or two-sided quotes
- ``kelly``          — Kelly criterion sizing and stake recommendation
- ``pricing_config`` — policy constants (margins, sharp books, grade table)

Nothing in this package imports from ``propedge.services``.
All modules are side-effect-free and unit-testable in isolation.
"""
