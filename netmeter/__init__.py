"""netmeter — network traffic accounting agent."""

__version__ = "1.0.0"
