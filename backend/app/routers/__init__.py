from app.routers import admin, attempts, auth, health, me, packages

__all__ = [
    "admin",
    "attempts",
    "auth",
    "health",
    "me",
    "packages",
]
