"""
Access Policy Engine.

Row-level policies modelled on Postgres RLS: each policy names a table,
the operations it covers, the database role it applies to and a USING
predicate (which existing rows are visible/affected). Writes may add a
WITH CHECK predicate over the new row; when absent the USING predicate
is applied to the new row, as Postgres does.

Policies are permissive and OR-combined. No matching policy means deny.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Callable, Dict, FrozenSet, Iterable, List, Optional

from app.core.errors import AuthorizationError

Row = Dict[str, Any]


class Operation(str, Enum):
    SELECT = "select"
    INSERT = "insert"
    UPDATE = "update"
    DELETE = "delete"


ALL_OPERATIONS = frozenset(Operation)


class DbRole(str, Enum):
    AUTHENTICATED = "authenticated"
    SERVICE_ROLE = "service_role"


@dataclass(frozen=True)
class Actor:
    """The caller as seen by the policies: auth.uid() plus its profile's role and organization."""
    id: Optional[str]
    role: Optional[str] = None
    organization_id: Optional[str] = None
    db_role: DbRole = DbRole.AUTHENTICATED


SERVICE_ACTOR = Actor(id=None, db_role=DbRole.SERVICE_ROLE)


def sql_equals(left: Any, right: Any) -> bool:
    """``left = right`` under SQL semantics: NULL never compares equal."""
    return left is not None and right is not None and left == right


@dataclass(frozen=True)
class Policy:
    name: str
    table: str
    operations: FrozenSet[Operation]
    using: Callable[[Actor, Row], bool]
    db_role: DbRole = DbRole.AUTHENTICATED
    with_check: Optional[Callable[[Actor, Row, Row], bool]] = field(default=None)

    def applies_to(self, operation: Operation, table: str, actor: Actor) -> bool:
        return (
            self.table == table
            and operation in self.operations
            and self.db_role == actor.db_role
        )

    def check_new_row(self, actor: Actor, old_row: Optional[Row], new_row: Row) -> bool:
        if self.with_check is not None:
            return self.with_check(actor, old_row or {}, new_row)
        return self.using(actor, new_row)


class AccessPolicyEngine:
    def __init__(self, policies: Iterable[Policy]):
        self._policies: List[Policy] = list(policies)

    def policies_for(self, operation: Operation, table: str, actor: Actor) -> List[Policy]:
        return [p for p in self._policies if p.applies_to(operation, table, actor)]

    def is_allowed(self, operation: Operation, table: str, actor: Actor, row: Row) -> bool:
        return any(p.using(actor, row) for p in self.policies_for(operation, table, actor))

    def check(self, operation: Operation, table: str, actor: Actor, row: Row) -> None:
        if not self.is_allowed(operation, table, actor, row):
            raise AuthorizationError(f"{operation.value} on {table} denied by row-level policy")

    def check_write(
        self,
        operation: Operation,
        table: str,
        actor: Actor,
        old_row: Optional[Row],
        new_row: Row,
    ) -> None:
        """USING on the existing row (updates/deletes), then WITH CHECK on the new row."""
        candidates = self.policies_for(operation, table, actor)
        if old_row is not None:
            candidates = [p for p in candidates if p.using(actor, old_row)]
            if not candidates:
                raise AuthorizationError(f"{operation.value} on {table} denied by row-level policy")
        if operation == Operation.DELETE:
            return
        if not any(p.check_new_row(actor, old_row, new_row) for p in candidates):
            raise AuthorizationError(f"{operation.value} on {table} violates row-level policy check")

    def filter_rows(self, operation: Operation, table: str, actor: Actor, rows: Iterable[Row]) -> List[Row]:
        policies = self.policies_for(operation, table, actor)
        return [row for row in rows if any(p.using(actor, row) for p in policies)]
