"""policyscan scanner package.

Provides the scan-and-match engine: literal matcher, the two per-object
searchers (metadata document, script tree), the evidence collector and
the orchestrator that drives them across all policy objects.
"""
