"""Infrastructure Layer — database access and cross-cutting concerns.

Invariants:
    - Infrastructure never imports from api/
    - Every database call is wrapped with error mapping to DatabaseError

Design Decisions:
    - The gateway owns SQL execution; statement construction stays in core/
"""
