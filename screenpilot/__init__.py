"""Autonomous phone UI agent: perceive the screen, ask a model, act, repeat."""

__version__ = "0.1.0"
