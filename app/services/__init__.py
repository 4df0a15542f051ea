"""서비스 패키지 — 스케줄링 비즈니스 로직 계층.

Service package — Scheduling business logic layer.
Stage status synchronization, calendar aggregation, cell reconciliation and
the scheduling view state. Services call repositories for store access.
"""
