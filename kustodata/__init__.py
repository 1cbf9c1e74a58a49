"""Building blocks for Kusto clients: KQL building, errors, response decoding, tracing details and cloud metadata."""

__version__ = "1.0.0"
__all__ = ["client_details", "cloudinfo", "errors", "kql", "kql_format", "response"]