"""Mozaiks plugin data gateway: namespaced collection writes for plugins."""

__version__ = "0.1.0"
