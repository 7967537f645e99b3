"""
captivate-bridge: feedback bridge between a button console and Captivate.

The bridge keeps a local feedback cache filled from the Captivate
automation registry over QWebChannel so the console can be answered
synchronously while the remote engine is queried in the background.
"""

__version__ = "3.0.0"

# Identity announced to Captivate in ``notifyClientConnected``.
CLIENT_ID = "com.newblue.companion-module-captivate"
CLIENT_VERSION = "3.0"

__all__ = ["CLIENT_ID", "CLIENT_VERSION", "__version__"]
