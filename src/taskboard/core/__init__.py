"""
Core types shared across the app.

Components:
- errors.py: error hierarchy
- ports.py: Protocols for the remote store, suggester, LLM and credential backends
- session.py: the signed-in user
- state.py: AppState wiring for the console
"""
