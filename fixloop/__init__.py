"""
fixloop - Autonomous verify/fix iteration for software projects.

Given a natural-language repair request and a verification check, fixloop
runs the check, classifies failures, routes them to repair strategies,
applies fixes and re-verifies until the check passes or the iteration
budget is exhausted.
"""

__version__ = "0.2.0"
__all__ = ["__version__"]
