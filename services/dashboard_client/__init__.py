from .supervisor import Backoff, DashboardClient, DashboardState

__all__ = ["Backoff", "DashboardClient", "DashboardState"]
