"""
FastAPI routers grouped by domain (auth, steps, profile).

Each module exposes an APIRouter included by the app factory. Routers fetch
their services from ``request.app.state`` and translate nothing themselves;
service errors are mapped to responses by the app's exception handlers.
"""
