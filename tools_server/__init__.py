"""Internal tools server: OAuth login, sessions and CRUD for pages, components and queries."""
