from valor.core.services.container import ServiceContainer

__all__ = ["ServiceContainer"]
