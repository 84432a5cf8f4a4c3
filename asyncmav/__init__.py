"""Subscription based asyncio adapter for MAVLink transports, with a parameter protocol client."""

__version__ = "0.1.4"
__all__ = ["connection", "messages", "parameter_protocol", "types", "util"]