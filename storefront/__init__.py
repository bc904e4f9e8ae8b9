"""Category, product and order CRUD service (FastAPI + SQLAlchemy)."""

__version__ = "0.1.0"
