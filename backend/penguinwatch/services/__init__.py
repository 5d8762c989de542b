# Services package init
"""
PenguinWatch Backend - Services Layer
=======================================

What:  Business logic layer sitting between routes (HTTP) and database (persistence).
How:   Services receive an AsyncSession per call, apply business rules, and
       return response models. create_app() builds one instance of each and
       stores them on app.state; routes get them through dependencies.

Service Inventory:
    - ImageService: Photo validation, storage, introspection and cleanup
    - ObservationService: Record lifecycle (insert, list, get, replace, delete)
    - StatsService: Totals and per-location metrics
"""
