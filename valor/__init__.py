"""Valor: combat resolution and progression economy engine."""

__version__ = "1.0.0"
