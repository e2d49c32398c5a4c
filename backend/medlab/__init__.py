"""MedLab hospital & laboratory management backend."""
