"""
PoeBridge - Poe provider adapter for coding assistants

Normalizes the Poe model catalog, streams chat completions through Poe's
OpenAI-compatible endpoint and offers a small settings panel for credentials.

Quick Start:
    pip install -e .
    poebridge models
"""

__version__ = "0.3.1"

__all__ = ["__version__"]
