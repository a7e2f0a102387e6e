"""
HTTP API routers for the Terminus narrative engine
"""
