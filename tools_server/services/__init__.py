"""
Use cases for the internal tools server.

Each service module orchestrates the repository (and, for login, the OAuth
provider registry) to implement business rules. Routers call these services
and translate their exceptions to HTTP status codes.
"""
