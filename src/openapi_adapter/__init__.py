"""OpenAPI-to-tool adapter: catalog, request compiler and dispatcher."""
