"""Application middleware."""

from gameshelf.middleware.correlation import CorrelationIDMiddleware, CorrelationIdFilter

__all__ = ["CorrelationIDMiddleware", "CorrelationIdFilter"]
