"""
Scheduling core.

- service_models.py: ServiceDescriptor
- service_store.py: SQLite registry + claim/release
- handlers.py: handler key -> ServiceHandler mapping
- service_runner.py: one pass over the due services
- recovery.py: atexit release of a claim left by a dying process
"""
