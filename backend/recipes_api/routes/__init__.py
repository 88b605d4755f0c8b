# Routes package init
"""
Recipes API - API Routes Package
==================================

Route Inventory:
    - recipes.py:  /v1/api/recipes ...       (listing, lookups, create / update / delete)
    - catalog.py:  /v1/api/categories ...    (category CRUD)
                   /v1/api/countries ...     (region CRUD)
    - health.py:   GET /health               (service health check)

Routes stay thin: they read the request, call a service and shape the
response. Business rules live in recipes_api.services.
"""
