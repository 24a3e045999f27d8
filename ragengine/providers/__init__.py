"""Concrete adapters for the interfaces in :mod:`ragengine.interfaces`."""
