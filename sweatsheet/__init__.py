"""
SweatSheet Programs - structured training programs for coaches and athletes.

This package contains the complete application:
- core: Framework-agnostic program engine
- infrastructure: Document store integration
- api: FastAPI routes and dependencies
- config: Application configuration
"""

__version__ = "0.1.0"
