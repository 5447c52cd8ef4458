"""API routers, one per resource area. All are mounted under /api by main.py."""
