"""
Background tasks (Celery).
"""
