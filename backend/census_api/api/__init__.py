"""API router subpackage for the census boundaries backend.

Submodules:
    - boundaries: Endpoints serving department and municipality
      FeatureCollections and clearing the feature cache.

Routers are grouped by feature domain and composed in the application's
main FastAPI instance.
"""
