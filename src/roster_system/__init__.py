"""Roster System package.

Organized by feature modules (records, identities, stats, ...) with a thin
Flask controller layer over service/repository layers.
"""
