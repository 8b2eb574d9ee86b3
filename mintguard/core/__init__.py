"""
Core infrastructure modules for the catalog database and upload utilities.
"""
