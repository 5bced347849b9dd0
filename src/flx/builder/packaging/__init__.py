"""
The `packaging` sub-package contains the modules that turn build outputs into
an application archive.

This includes:
- Deciding whether the kernel compiler must run, using a persisted fingerprint.
- Resolving the asset bundle and assembling it with compiled artifacts.
- Orchestrating the whole build and reading archives back for inspection.
"""
