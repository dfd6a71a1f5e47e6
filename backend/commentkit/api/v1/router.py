"""API v1 router aggregator.

All v1 endpoint routers are included here; main.py mounts this router
at /api/v1.
"""

from fastapi import APIRouter

from commentkit.api.v1 import auth, comments, likes, widget

router = APIRouter()

# =============================================================================
# Authentication
# =============================================================================

router.include_router(auth.router, prefix="/auth", tags=["auth"])

# =============================================================================
# Widget bootstrap
# =============================================================================

router.include_router(widget.router, prefix="/widget", tags=["widget"])

# =============================================================================
# Comments and likes
# =============================================================================

router.include_router(comments.router, prefix="/sites", tags=["comments"])
router.include_router(likes.router, tags=["likes"])
