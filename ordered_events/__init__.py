"""Ordered event processing with bounded retry, dead-lettering and a distributed circuit breaker."""
