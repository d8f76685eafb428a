"""
PalmCosmic backend package.

This package provides a FastAPI application for palm readings, the Astrobot
chat assistant and the community blog, with storage, database, queue and
change-feed abstractions so each managed service can be swapped for an
in-memory implementation in development and tests.
"""
