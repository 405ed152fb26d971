"""
Web Adapters

FastAPI applications for the REST API and the RPC surface.
"""

from cantorx.adapters.web.api import ApiServices, create_app
from cantorx.adapters.web.rpc import create_rpc_app

__all__ = ["ApiServices", "create_app", "create_rpc_app"]
