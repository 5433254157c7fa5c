"""Agent Handoff - carry a coding-agent session over to another tool."""

__version__ = "0.1.0"
