# PATH: strategy/jobs/__init__.py
"""
Strategy jobs package.

Available entry points:
    python -m strategy.jobs.run_agent       # Scan loop (crossarb-agent)

NOTE: This __init__.py intentionally does NOT import run_agent to avoid
side effects when importing the package.
"""

__all__: list[str] = []
