from .routes import departments_router

__all__ = ["departments_router"]
