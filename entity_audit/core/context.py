# entity_audit/core/context.py

import contextvars

correlation_id_ctx = contextvars.ContextVar("correlation_id", default=None)
actor_ctx = contextvars.ContextVar("actor", default=None)
