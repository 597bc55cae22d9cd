from valor.core.tasks.periodic import PeriodicTask

__all__ = ["PeriodicTask"]
