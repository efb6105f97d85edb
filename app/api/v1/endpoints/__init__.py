from app.api.v1.endpoints import auth, drivers, requests, subscriptions, vehicles

__all__ = ["auth", "drivers", "requests", "subscriptions", "vehicles"]
