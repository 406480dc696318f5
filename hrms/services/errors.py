from __future__ import annotations


class HierarchyError(Exception):
    pass


class ValidationError(HierarchyError):
    pass


class AuthenticationError(HierarchyError):
    pass


class AuthorizationError(HierarchyError):
    pass


class NotFoundError(HierarchyError):
    pass


class ConflictError(HierarchyError):
    pass


class TransactionError(HierarchyError):
    pass
