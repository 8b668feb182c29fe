# src/letitout/services/__init__.py
"""Sync and merge services for the Let It Out client core."""
