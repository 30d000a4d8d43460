"""Prompting package.

This package contains deterministic prompt-template helpers used by dataset runs.
It does not perform routing or model invocation.
"""
