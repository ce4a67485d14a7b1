"""Service helpers used by the HTTP routers."""
