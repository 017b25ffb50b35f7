"""
SQL generation and execution for single-entity writes and loads.
"""

from __future__ import annotations

from typing import Any, Dict, Iterable, List, Optional, Sequence

from ..adapters.base import DatabaseAdapter
from ..errors import EntityNotManagedError, MappingError
from ..mapping.metadata import AssociationMapping, EntityMetadata, IdGeneration, JoinTable
from ..mapping.registry import MetadataRegistry
from ..utils import get_logger


class EntityPersister:
    """
    Builds INSERT/UPDATE/DELETE/SELECT statements from mapping metadata.

    The persister never decides *what* to write; the unit of work hands it one
    entity at a time in dependency order.
    """

    def __init__(self, adapter: DatabaseAdapter, registry: MetadataRegistry) -> None:
        self.adapter = adapter
        self.registry = registry
        self.dialect = adapter.dialect
        self.logger = get_logger("persistence.persister")

    # ------------------------------------------------------------------ #
    # Writes
    # ------------------------------------------------------------------ #
    def insert(self, entity: object, *, deferred: Iterable[AssociationMapping] = ()) -> Any:
        """
        Insert ``entity`` and return its identifier.

        Foreign keys listed in ``deferred`` are written as NULL; the caller
        updates them once their targets exist.
        """
        metadata = self.registry.metadata_of(entity)
        identifier = metadata.get_identifier(entity)
        deferred_fields = {association.field_name for association in deferred}

        columns: List[str] = []
        params: List[Any] = []
        for mapping in metadata.all_fields():
            value = mapping.get(entity)
            if mapping is metadata.identifier and value is None:
                continue
            columns.append(mapping.column)
            params.append(mapping.type.to_database(value))
        for association in metadata.owning_to_one():
            columns.append(association.join_column)
            if association.field_name in deferred_fields:
                params.append(None)
            else:
                params.append(self.foreign_key_value(entity, association))

        table = self.dialect.format_table(metadata.table)
        columns_sql = ", ".join(self.dialect.quote_identifier(column) for column in columns)
        placeholders = ", ".join(self.dialect.parameter_placeholder() for _ in columns)
        if columns:
            sql = f"INSERT INTO {table} ({columns_sql}) VALUES ({placeholders})"
        else:
            sql = f"INSERT INTO {table} DEFAULT VALUES"

        needs_identity = identifier is None and metadata.identifier.generation is IdGeneration.IDENTITY
        if needs_identity and self.dialect.capabilities.supports_returning:
            sql += f" RETURNING {self.dialect.quote_identifier(metadata.identifier.column)}"
        cursor = self.adapter.execute(sql, params)

        if needs_identity:
            raw = self.adapter.last_insert_id(cursor, metadata.table, metadata.identifier.column)
            identifier = metadata.identifier.type.to_python(raw)
            metadata.set_identifier(entity, identifier)
        return identifier

    def update(self, entity: object, changed: Iterable[str]) -> bool:
        """
        Write the columns behind ``changed`` field names; False when nothing maps to a column.
        """
        metadata = self.registry.metadata_of(entity)
        assignments: Dict[str, Any] = {}
        for name in changed:
            if name in metadata.fields:
                mapping = metadata.fields[name]
                assignments[mapping.column] = mapping.type.to_database(mapping.get(entity))
            elif name in metadata.associations and metadata.associations[name].writes_foreign_key:
                association = metadata.associations[name]
                assignments[association.join_column] = self.foreign_key_value(entity, association)
        if not assignments:
            return False
        self._update_columns(entity, metadata, assignments)
        return True

    def write_foreign_keys(self, entity: object, associations: Sequence[AssociationMapping]) -> None:
        metadata = self.registry.metadata_of(entity)
        assignments = {
            association.join_column: self.foreign_key_value(entity, association)
            for association in associations
        }
        self._update_columns(entity, metadata, assignments)

    def clear_foreign_keys(self, entity: object, associations: Sequence[AssociationMapping]) -> None:
        metadata = self.registry.metadata_of(entity)
        self._update_columns(entity, metadata, {association.join_column: None for association in associations})

    def _update_columns(self, entity: object, metadata: EntityMetadata, assignments: Dict[str, Any]) -> None:
        placeholder = self.dialect.parameter_placeholder()
        set_sql = ", ".join(
            f"{self.dialect.quote_identifier(column)} = {placeholder}" for column in assignments
        )
        params = list(assignments.values())
        params.append(self._identifier_param(entity, metadata))
        sql = (
            f"UPDATE {self.dialect.format_table(metadata.table)} SET {set_sql} "
            f"WHERE {self._identifier_clause(metadata)}"
        )
        self.adapter.execute(sql, params)

    def delete(self, entity: object) -> None:
        metadata = self.registry.metadata_of(entity)
        sql = f"DELETE FROM {self.dialect.format_table(metadata.table)} WHERE {self._identifier_clause(metadata)}"
        self.adapter.execute(sql, (self._identifier_param(entity, metadata),))

    # ------------------------------------------------------------------ #
    # Many-to-many link rows
    # ------------------------------------------------------------------ #
    def link(self, entity: object, association: AssociationMapping, member: object) -> bool:
        """
        Insert the link row unless it already exists.
        """
        join_table = self._join_table(association)
        params = (self._link_owner(entity), self._link_member(member))
        table = self.dialect.format_table(join_table.name)
        placeholder = self.dialect.parameter_placeholder()
        where = (
            f"{self.dialect.quote_identifier(join_table.join_column)} = {placeholder} AND "
            f"{self.dialect.quote_identifier(join_table.inverse_join_column)} = {placeholder}"
        )
        row = self.adapter.fetch_one(f"SELECT COUNT(*) AS link_count FROM {table} WHERE {where}", params)
        if row and int(row["link_count"]) > 0:
            return False
        columns = ", ".join(
            self.dialect.quote_identifier(column)
            for column in (join_table.join_column, join_table.inverse_join_column)
        )
        self.adapter.execute(f"INSERT INTO {table} ({columns}) VALUES ({placeholder}, {placeholder})", params)
        return True

    def unlink(self, entity: object, association: AssociationMapping, member: object) -> None:
        join_table = self._join_table(association)
        placeholder = self.dialect.parameter_placeholder()
        sql = (
            f"DELETE FROM {self.dialect.format_table(join_table.name)} WHERE "
            f"{self.dialect.quote_identifier(join_table.join_column)} = {placeholder} AND "
            f"{self.dialect.quote_identifier(join_table.inverse_join_column)} = {placeholder}"
        )
        self.adapter.execute(sql, (self._link_owner(entity), self._link_member(member)))

    @staticmethod
    def _join_table(association: AssociationMapping) -> JoinTable:
        if association.join_table is None:
            raise MappingError(f"Association '{association.field_name}' has no join table.")
        return association.join_table

    def _link_owner(self, entity: object) -> Any:
        return self._identifier_param(entity, self.registry.metadata_of(entity))

    def _link_member(self, member: object) -> Any:
        metadata = self.registry.metadata_of(member)
        if metadata.get_identifier(member) is None:
            raise EntityNotManagedError(member, operation="link")
        return self._identifier_param(member, metadata)

    # ------------------------------------------------------------------ #
    # Reads
    # ------------------------------------------------------------------ #
    def load(
        self, metadata: EntityMetadata, value: Any, *, column: Optional[str] = None
    ) -> Optional[Dict[str, Any]]:
        """
        Fetch one row by identifier, or by ``column`` when given.
        """
        columns = [mapping.column for mapping in metadata.all_fields()]
        columns.extend(association.join_column for association in metadata.owning_to_one())
        select_list = ", ".join(self.dialect.quote_identifier(name) for name in columns)
        if column is None or column == metadata.identifier.column:
            where = self._identifier_clause(metadata)
            param = metadata.identifier.type.to_database(value)
        else:
            where = f"{self.dialect.quote_identifier(column)} = {self.dialect.parameter_placeholder()}"
            mapping = metadata.column_for(column)
            param = mapping.type.to_database(value) if mapping is not None else value
        sql = f"SELECT {select_list} FROM {self.dialect.format_table(metadata.table)} WHERE {where}"
        return self.adapter.fetch_one(sql, (param,))

    # ------------------------------------------------------------------ #
    # Helpers
    # ------------------------------------------------------------------ #
    def foreign_key_value(self, entity: object, association: AssociationMapping) -> Any:
        """
        Column value for an owning to-one association, read from the referenced entity.
        """
        related = association.get(entity)
        if related is None:
            return None
        target = self.registry.metadata_of(related)
        mapping = target.column_for(association.referenced_column) or target.identifier
        value = mapping.get(related)
        if value is None:
            raise EntityNotManagedError(related, operation="reference")
        return mapping.type.to_database(value)

    def _identifier_clause(self, metadata: EntityMetadata) -> str:
        return f"{self.dialect.quote_identifier(metadata.identifier.column)} = {self.dialect.parameter_placeholder()}"

    @staticmethod
    def _identifier_param(entity: object, metadata: EntityMetadata) -> Any:
        return metadata.identifier.type.to_database(metadata.get_identifier(entity))
