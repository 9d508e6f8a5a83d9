from .models import db, ROLES, User, GlobalReading, Plot, PlotReading

__all__ = ["db", "ROLES", "User", "GlobalReading", "Plot", "PlotReading"]
