"""
Core diagnostic analysis engine.
"""
