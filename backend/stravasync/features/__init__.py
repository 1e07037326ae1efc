"""
Feature modules.

Each feature owns its models, schemas, repositories and services.
"""
