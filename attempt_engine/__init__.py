# -*- coding: utf-8 -*-
"""Test Attempt Engine: timed test taking with autosave and grading."""

__version__ = "0.1.0"
