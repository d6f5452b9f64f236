"""Planline - Gantt scheduling and dependency engine."""
