"""
Demo Video Automator package.

Intentionally avoids importing heavy submodules at package load time so that
Playwright and the tree-sitter grammars are only loaded when the
corresponding module is explicitly imported.
"""
