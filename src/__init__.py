"""Package marker for the backend source tree.

Modules import each other absolutely (`from core.config import ...`) with
`src` on the path, as set by `pythonpath` in the pytest configuration and by
the package-dir mapping when installed.
"""
