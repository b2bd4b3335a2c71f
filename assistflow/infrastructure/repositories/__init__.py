from .audit import AuditFilters, SqlAuditRepository, SqlAuditSink
from .rbac import SqlRbacRepository
from .requests import SqlRequestRepository
from .unit_of_work import UnitOfWork
from .users import SqlUserRepository

__all__ = [
    "AuditFilters",
    "SqlAuditRepository",
    "SqlAuditSink",
    "SqlRbacRepository",
    "SqlRequestRepository",
    "SqlUserRepository",
    "UnitOfWork",
]
