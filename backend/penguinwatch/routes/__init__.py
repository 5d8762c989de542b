# Routes package init
"""
PenguinWatch Backend - API Routes Package
===========================================

Route Inventory:
    - observations.py:  GET/POST /api/observations
                        GET/PUT/DELETE /api/observations/{id}
    - stats.py:         GET /api/stats, GET /api/location-metrics
    - uploads.py:       GET /uploads/{filename}
    - health.py:        GET /health

Routes stay thin: extract form fields and files, run validation, call the
service, return the response model. Status codes for failures come from the
global exception handlers in main.py.
"""
