from tasktracker.security.redaction import redact_sensitive_text

__all__ = ["redact_sensitive_text"]
