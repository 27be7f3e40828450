"""Repositories layered over :class:`~spineorm.executor.EntityExecutor`.

Architecture::

    ┌────────────────────────────────────────────────────────────────┐
    │  application code                                              │
    └────────────────────────────┬───────────────────────────────────┘
                                 │ uses
                                 ▼
    ┌────────────────────────────────────────────────────────────────┐
    │  persist.py  — PersistRepository  (cascades over associations) │
    │  crud.py     — CRUDRepository     (error taxonomy, merge)      │
    │  join.py     — JoinRepository     (synthetic association rows) │
    └────────────────────────────┬───────────────────────────────────┘
                                 │ wraps
                                 ▼
                     EntityExecutor (bind / execute / hydrate)

Tags:
    repository, crud, merge, cascade, spine-orm
"""

from spineorm.repositories.crud import CRUDRepository
from spineorm.repositories.join import JoinRepository
from spineorm.repositories.persist import PersistRepository

__all__ = [
    "CRUDRepository",
    "JoinRepository",
    "PersistRepository",
]
