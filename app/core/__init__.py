"""
Core Application - Infrastructure & Base Classes

This app contains the shared building blocks used by the chat and
notification apps. It holds no chat rules of its own.

Models (import from core.models):
    - BaseModel: Abstract model with timestamps (created_at, updated_at)

Model Mixins (import from core.model_mixins):
    - UUIDPrimaryKeyMixin: UUID as primary key
    - SoftDeleteMixin: Soft delete support (is_deleted, deleted_at)

Services (import from core.services):
    - BaseService: Base class for service layer
    - ServiceResult: Standard result wrapper for success/failure handling

Resilience (import from core.circuit_breaker):
    - PersistenceCircuit: DB_CONNECTED / DB_DEGRADED state machine with a
      rate-limited health probe

Views (import from core.views):
    - health_check: Database and dispatcher status for load balancers
"""
