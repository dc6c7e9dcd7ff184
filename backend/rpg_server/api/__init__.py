"""
Claude RPG - API Package
========================

FastAPI application and routers.
"""
