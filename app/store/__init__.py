from app.store.interface import EntityStore

__all__ = ["EntityStore"]
