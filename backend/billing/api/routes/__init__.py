"""Route Modules: one file per mounted prefix.

Invariants:
    - Each module defines an APIRouter without prefix; the mount plan assigns it
    - Modules may export public_routes / admin_routes (relative sub-paths);
      absence means empty
"""
