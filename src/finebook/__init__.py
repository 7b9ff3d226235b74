# ABOUTME: Finebook package, a sports team's fine and donation ledger
# ABOUTME: Exports create_server function and version info

from finebook.server import create_server

__version__ = "0.1.0"
__all__ = ["create_server", "__version__"]
