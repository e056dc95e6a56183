# -*- coding: utf-8 -*-
"""
Routers for the attempt API.

``tests_router`` is mounted under ``/tests`` and ``test_attempts_router``
under ``/test-attempts``.
"""

from fastapi import APIRouter

from . import history, progress, start, status, submit

tests_router = APIRouter()

tests_router.include_router(start.router, tags=["🧪 Tests - 🎓 Start"])
tests_router.include_router(status.router, tags=["🧪 Tests - 📈 Status"])

test_attempts_router = APIRouter()

test_attempts_router.include_router(
    progress.router, tags=["🧪 Attempts - 💾 Progress"]
)
test_attempts_router.include_router(submit.router, tags=["🧪 Attempts - 📝 Submit"])
test_attempts_router.include_router(
    history.router, tags=["🧪 Attempts - 📖 History"]
)
