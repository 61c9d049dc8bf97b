"""
SHARGE: Self-hosted File Sharing Server

Browse, upload, download, rename and delete files under a single root
directory from the browser, behind a shared-password login.
"""

__version__ = "1.0.0"
