"""Route Modules — one file per resource/concern.

Invariants:
    - Each module defines its own APIRouter
    - Routes never build SQL (delegate to the gateway)

Design Decisions:
    - Explicit registration in main.py over auto-discovery; health is
      registered before tables so /_health is not read as a table name
"""
