"""
Quality Control Dashboard HTTP API (FastAPI).
"""
