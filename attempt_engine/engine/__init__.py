# -*- coding: utf-8 -*-
"""
Client-side attempt engine: answer store, timers, autosave and grading rules.
"""
