# product_discovery/services/__init__.py
"""Pipeline stages, providers and cache stores"""

# Modules are imported directly where needed; the pipeline imports most of them
# and re-exporting here would create an import cycle through core.pipeline.

__all__ = []
