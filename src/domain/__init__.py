"""
Domain Layer - Pure Business Logic

This layer contains:
- Entities: the User account and its pending authentication state
- Interfaces: contracts the infrastructure implements (credential store, notifications)
- Exceptions: the authentication error hierarchy

No external dependencies allowed in this layer.
"""
