"""Pytest plugin resolving ``inject``-annotated test parameters.

Registered automatically through the ``pytest11`` entry point once bindwire is
installed.
"""
