"""Application services around the pure planning core.

This package provides:
- A repository boundary for loading and saving projects
- ProjectService, which serialises mutations per project and publishes facts
"""
