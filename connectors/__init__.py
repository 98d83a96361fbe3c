"""
connectors — OAuth connection manager for external social accounts.

Provides:
  • Authorization-URL generation with persisted CSRF state (+ PKCE)
  • Callback handling (code → credential bundle, per-provider shapes)
  • Connected-account storage with Fernet encryption at rest
  • Token refresh for providers that issue refresh tokens

Each provider (Twitter, LinkedIn, Instagram) is a subclass of BaseConnector.
"""
