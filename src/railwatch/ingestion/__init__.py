"""Feed ingestion helpers.

Converts heterogeneous feed payloads into the typed models in
:mod:`railwatch.models`.
"""
