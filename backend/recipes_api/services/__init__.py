# Services package init
"""
Recipes API - Services Layer
==============================

What:  Business logic between routes (HTTP) and the database.

Service Inventory:
    - pagination:      page arithmetic (total pages, page validation)
    - CacheStore:      listing cache (in-memory or Redis)
    - ImageStore:      image host adapter (Cloudinary)
    - UploadService:   multipart image validation and disk staging
    - RecipeService:   listing + cache, lookups, create / update / delete
    - CatalogService:  categories and regions

Services receive their collaborators through the constructor; see
recipes_api.dependencies.build_services() for the wiring.
"""
