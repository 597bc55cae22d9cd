"""
Valor Engine Test Suite
=======================

Test Organization
-----------------
- tests/unit/          : Pure engines, value objects and infrastructure helpers
- tests/integration/   : Services against a real database (SQLite per test,
                         PostgreSQL via testcontainers for ``database`` tests)

Testing Philosophy
------------------
- Unit tests: fast, isolated, deterministic (seeded or fixed randomness)
- Integration tests: exercise the transaction and locking discipline
- Use pytest markers to categorize and selectively run tests
- Follow AAA pattern: Arrange, Act, Assert
"""
