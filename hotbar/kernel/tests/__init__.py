"""
Hotbar Kernel Test Suite

Test Files:
1. test_resolver.py - Container classification and slot keys
2. test_migrations.py - Legacy → v1 → v2, idempotence, fallback
3. test_store.py - Load/save, cell and container updates, echo suppression
4. test_views.py - View lifecycle and isolation
5. test_layout.py - Column resize conservation and placement
6. test_popover.py - Nested grid reconciliation
7. test_coordinator.py - Clicks, drops, removal, container operations
8. test_postgres_storage.py - Postgres backend (needs DATABASE_URL)
"""
