"""
Command line interface for the Darna authentication service.
"""
from .commands import app

__all__ = ['app']

# This allows the module to be run directly with `python -m darnaauth.cli`
if __name__ == "__main__":
    app()
