# treesync/window/__init__.py
"""Desktop host: a PySide6 window with a web view rendering the tree."""
