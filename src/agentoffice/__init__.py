"""Agent Office - mission execution and event streaming for the agent office dashboard."""

__version__ = "0.3.0"
