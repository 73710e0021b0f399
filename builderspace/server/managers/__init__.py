"""Domain services for BuilderSpace.

Each module provides async functions that encapsulate data access and
business rules for one entity.  Managers accept ``AsyncSession`` as a
parameter and raise the domain exceptions in :mod:`builderspace.server.errors`,
never HTTP exceptions -- that translation is the app's responsibility.

Write operations follow one order: resolve the target (not found), check the
caller's membership or role (unauthorized), validate and sanitize input,
perform the write, then broadcast the change to the other members.
"""
