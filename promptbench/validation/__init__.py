"""Validation package.

Sequential end-to-end checks of configured models through the dispatch layer.
"""
