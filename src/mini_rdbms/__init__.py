"""
mini_rdbms - Minimal Relational Data Engine

A small, durable relational engine: one append-only binary file per table
with rebuildable primary-key and uniqueness indexes, driven by a SQL-like
command dispatcher that supports CRUD and a two-table equi-join.
"""

__version__ = "0.1.0"
__author__ = "Systems Engineering Portfolio"
