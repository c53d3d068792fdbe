"""
AI subtask suggestions.

Components:
- client.py: OpenAI-compatible streaming client with model fallback
- offline.py: deterministic client used when no API key is configured
- suggester.py: prompt, reply parsing and the Suggester implementation
"""
