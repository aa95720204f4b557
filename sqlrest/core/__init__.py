"""Core Layer — pure translation logic, no IO, no async, no DB connections.

Invariants:
    - No module in core/ imports from api/ or infrastructure/
    - Statement builders construct SQLAlchemy expressions but never execute them

Design Decisions:
    - Functional core separated from imperative shell: path parsing, statement
      building and envelope formatting are testable without a database
"""
