"""SQLAlchemy ORM models. Importing a module registers its table on Base.metadata."""
