"""
Pydantic models for catalog entries and API responses.
"""
