"""
Question bank core.

Keeps the denormalized question aggregates consistent with the primary
question table and assembles quiz question sets from them:

- aggregates: the eight aggregate indexes, write fan-out and reconciliation
- stores: primary question, taxonomy and per-user activity stores
- stats: per-user answered/incorrect/bookmarked counters
- quiz: scope resolution, random sampling and mode-filtered pools
"""

__version__ = "1.0.0"
