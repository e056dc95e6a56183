# -*- coding: utf-8 -*-
"""
Attempt API: start, autosave, submit, status, history and results.
"""

from .routes import test_attempts_router, tests_router

__all__ = ["tests_router", "test_attempts_router"]
