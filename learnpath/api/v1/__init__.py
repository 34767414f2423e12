"""
API v1 routes.
"""

from fastapi import APIRouter

from learnpath.api.v1 import admin_learners, admin_quizzes, prerequisites, progress, quizzes

router = APIRouter()

router.include_router(prerequisites.router, tags=["Prerequisites"])
router.include_router(progress.router, tags=["Progress"])
router.include_router(quizzes.router, tags=["Quizzes"])
router.include_router(admin_quizzes.router, prefix="/admin/quizzes", tags=["Admin: Quizzes"])
router.include_router(admin_learners.router, prefix="/admin/learners", tags=["Admin: Learners"])
