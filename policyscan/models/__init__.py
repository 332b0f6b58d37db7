"""policyscan models package.

Defines the shared data contracts used across the scan engine and presenters:

  - policy.py  — PolicyObject, PolicyLink, ScriptRoot, ScriptKind (scan inputs)
  - scan.py    — SourceKind, MetadataSnippet, ScriptLine, ScanResult,
                 ProgressEvent, ScanOptions, ScanOutcome (scan outputs)
"""
