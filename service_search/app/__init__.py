"""
Search Service package for the Earthdata Search Access Layer.

The search service proxies catalog searches for signed-in users and holds
the project logic the client relies on:
- Query building: allow-listed parameters encoded for the catalog
- Credentials: session tokens exchanged for catalog credentials
- Project batches: granules, metadata and access methods per collection

Structure:
- app.main: FastAPI app, routes, and service wiring.
- app.query: Parameter filtering, encoding and URL construction.
- app.auth: Session token verification and credential providers.
- app.proxy: Authenticated catalog request execution.
- app.adapters: HTTP clients for the backing API and the catalog.
- app.domain: Granules, collections, access methods, chunking and state.
"""
