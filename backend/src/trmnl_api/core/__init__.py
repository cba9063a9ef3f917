"""Core services: configuration, logging, exceptions, HTTP and caches."""
