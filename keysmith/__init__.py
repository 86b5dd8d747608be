"""keysmith: credential lifecycle engine for cloud connections.

Provides credentials holders (static, default chain, session), a background
refresher for session credentials and an access key rotator for persisted
connections.
"""

__version__ = "0.1.0"
