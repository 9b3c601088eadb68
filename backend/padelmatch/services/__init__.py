"""
Services Layer

Match-lifecycle engine services that:
- Accept domain inputs (repository, notifier, settings, explicit now)
- Return result dataclasses instead of raising on business outcomes
- Do NOT depend on HTTP request/response objects
"""
