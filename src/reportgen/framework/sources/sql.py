"""
SQLAlchemy implementation of the collaborator protocols.

``SqlReportRepository`` serves report definitions, column mappings, data
sources and lookups from one database. The statements are class attributes
written for SQL Server (stored procedures, table-valued functions,
``sys.parameters`` introspection, scalar lookup functions); subclasses
override them for other dialects.

Data sources:
    - Names starting with ``dbo.`` or registered as table-valued functions
      run as ``SELECT * FROM name(:p1, :p2 ...)`` with declared parameters in
      declaration order
    - Everything else runs as ``EXEC name @p1=:p1, ...`` with only the
      declared parameters the caller supplied

Lookups are cached per kind with a TTL (``TTLCache``).

Tags:
    sqlalchemy, sql-server, data-source, lookups, reportgen

Doc-Types:
    - API Reference
"""

from __future__ import annotations

import re
from collections.abc import Mapping
from typing import Any

from sqlalchemy import bindparam, create_engine as _sa_create_engine, text
from sqlalchemy.engine import Engine
from sqlalchemy.exc import SQLAlchemyError

from reportgen.core.cache import TTLCache
from reportgen.core.errors import DataSourceError, ErrorCode, ReportConfigError
from reportgen.core.tables import SCHEMA_PREFIX, ResultSet
from reportgen.framework.logging import get_logger
from reportgen.framework.sources.protocol import DeclaredParameter, ReportConfig, parse_source_descriptor
from reportgen.rendering.headers import ColumnMapping, ColumnMappings

logger = get_logger(__name__)

_IDENTIFIER = re.compile(r"^[A-Za-z_][\w]*(\.[A-Za-z_][\w]*)?$")


def create_engine(
    url: str,
    *,
    echo: bool = False,
    pool_timeout: int | None = None,
    **kwargs: Any,
) -> Engine:
    """
    Create a SQLAlchemy engine.

    Parameters
    ----------
    url:
        Database URL (``mssql+pyodbc://…``, ``sqlite:///…``).
    pool_timeout:
        Seconds to wait for a pooled connection (ignored for SQLite).
    """
    if url.startswith("sqlite"):
        kwargs.setdefault("connect_args", {"check_same_thread": False})
        return _sa_create_engine(url, echo=echo, **kwargs)
    if pool_timeout is not None:
        kwargs["pool_timeout"] = pool_timeout
    return _sa_create_engine(url, echo=echo, pool_pre_ping=True, **kwargs)


def _check_identifier(name: str) -> str:
    if not _IDENTIFIER.match(name):
        raise DataSourceError(f"Invalid data source name: {name!r}").with_context(source_name=name)
    return name


def _bare_name(name: str) -> str:
    return name.split(".")[-1]


class SqlReportRepository:
    """Report definitions, column mappings, data sources and lookups over one engine."""

    REPORT_CONFIG_SQL = (
        "SELECT ReportID, ReportName, StoredProcName, Title, Description "
        "FROM ReportsGenerator WHERE ReportName = :name"
    )
    COLUMN_MAPPINGS_SQL = (
        "SELECT TableName, ColumnName, HebrewAlias FROM ReportsGeneratorColumns "
        "WHERE TableName IN :names OR TableName IN (SELECT name FROM sys.tables)"
    )
    DECLARED_PARAMETERS_SQL = (
        "SELECT p.name AS name, t.name AS type_name, p.is_nullable AS nullable, "
        "p.has_default_value AS has_default, CONVERT(NVARCHAR(100), p.default_value) AS default_value "
        "FROM sys.parameters p "
        "JOIN sys.types t ON p.user_type_id = t.user_type_id "
        "JOIN sys.objects o ON p.object_id = o.object_id "
        "WHERE o.name = :name AND p.is_output = 0 AND p.name <> '' "
        "ORDER BY p.parameter_id"
    )
    TABLE_FUNCTION_SQL = "SELECT COUNT(1) FROM sys.objects WHERE name = :name AND type IN ('IF', 'TF')"
    MONTH_NAME_SQL = "SELECT dbo.mntname(:code)"
    PERIOD_NAME_SQL = "SELECT dbo.PeriodName(:code)"
    CHARGE_TYPE_NAME_SQL = "SELECT dbo.SugtsName(:code)"
    SETTLEMENT_NAME_SQL = "SELECT dbo.GetCityName(:code)"
    ORGANIZATION_NAME_SQL = "SELECT dbo.GetMoazaName()"

    def __init__(
        self,
        engine: Engine,
        *,
        cache_max_items: int = 500,
        month_ttl_seconds: int = 30 * 60,
        charge_type_ttl_seconds: int = 120 * 60,
        settlement_ttl_seconds: int = 120 * 60,
        organization_ttl_seconds: int = 5 * 60,
    ):
        self.engine = engine
        self._months = TTLCache(max_size=cache_max_items, default_ttl_seconds=month_ttl_seconds)
        self._charge_types = TTLCache(max_size=cache_max_items, default_ttl_seconds=charge_type_ttl_seconds)
        self._settlements = TTLCache(max_size=cache_max_items, default_ttl_seconds=settlement_ttl_seconds)
        self._organization = TTLCache(max_size=1, default_ttl_seconds=organization_ttl_seconds)
        self._mappings = TTLCache(max_size=cache_max_items, default_ttl_seconds=month_ttl_seconds)

    @classmethod
    def from_settings(cls, settings: Any, engine: Engine | None = None) -> SqlReportRepository:
        engine = engine or create_engine(
            settings.database_url,
            echo=settings.database_echo,
            pool_timeout=settings.database_pool_timeout,
        )
        return cls(
            engine,
            cache_max_items=settings.lookup_cache_max_items,
            month_ttl_seconds=settings.month_cache_ttl_seconds,
            charge_type_ttl_seconds=settings.charge_type_cache_ttl_seconds,
            settlement_ttl_seconds=settings.settlement_cache_ttl_seconds,
            organization_ttl_seconds=settings.organization_cache_ttl_seconds,
        )

    # ------------------------------------------------------------------ #
    # ReportConfigStore
    # ------------------------------------------------------------------ #

    def get_report_config(self, name: str) -> ReportConfig | None:
        try:
            with self.engine.connect() as conn:
                row = conn.execute(text(self.REPORT_CONFIG_SQL), {"name": name}).mappings().first()
        except SQLAlchemyError as e:
            raise ReportConfigError(
                f"Failed to load report configuration for '{name}'",
                code=ErrorCode.DB_QUERY_FAILED,
                cause=e,
            ).with_context(report_name=name) from e
        if row is None:
            return None
        return ReportConfig(
            report_id=row["ReportID"],
            report_name=row["ReportName"],
            source_descriptor=row["StoredProcName"] or "",
            title=row["Title"] or "",
            description=row["Description"] or "",
        )

    # ------------------------------------------------------------------ #
    # ColumnMappingStore
    # ------------------------------------------------------------------ #

    def get_mappings(self, source_names: str) -> ColumnMappings:
        return self._mappings.get_or_set(source_names, lambda: self._load_mappings(source_names))

    def _load_mappings(self, source_names: str) -> ColumnMappings:
        names = [_bare_name(n) for n in parse_source_descriptor(source_names)]
        stmt = text(self.COLUMN_MAPPINGS_SQL).bindparams(bindparam("names", expanding=True))
        try:
            with self.engine.connect() as conn:
                rows = conn.execute(stmt, {"names": names}).all()
        except SQLAlchemyError as e:
            raise DataSourceError(
                f"Failed to load column mappings for '{source_names}'",
                code=ErrorCode.DB_COLUMN_MAPPING_NOT_FOUND,
                cause=e,
            ) from e
        mappings = [ColumnMapping(table_name=r[0], column_name=r[1], alias=r[2]) for r in rows]
        logger.debug("sql.mappings_loaded", sources=source_names, count=len(mappings))
        return ColumnMappings(mappings, source_names=names)

    # ------------------------------------------------------------------ #
    # DataSource
    # ------------------------------------------------------------------ #

    def get_declared_parameters(self, name: str) -> list[DeclaredParameter]:
        _check_identifier(name)
        try:
            with self.engine.connect() as conn:
                rows = conn.execute(text(self.DECLARED_PARAMETERS_SQL), {"name": _bare_name(name)}).mappings().all()
        except SQLAlchemyError as e:
            raise DataSourceError(
                f"Failed to read declared parameters of '{name}'",
                code=ErrorCode.DB_STORED_PROC_MISSING_PARAM,
                cause=e,
            ).with_context(source_name=name) from e

        declared: dict[str, DeclaredParameter] = {}
        for row in rows:
            param_name = str(row["name"]).lstrip("@")
            key = param_name.casefold()
            if key in declared:
                continue
            declared[key] = DeclaredParameter(
                name=param_name,
                type_name=str(row["type_name"]),
                nullable=bool(row["nullable"]),
                default=row["default_value"] if row["has_default"] else None,
            )
        return list(declared.values())

    def is_table_function(self, name: str) -> bool:
        if name.casefold().startswith(SCHEMA_PREFIX):
            return True
        with self.engine.connect() as conn:
            count = conn.execute(text(self.TABLE_FUNCTION_SQL), {"name": _bare_name(name)}).scalar()
        return bool(count)

    def build_statement(
        self,
        name: str,
        parameters: Mapping[str, Any],
        declared: list[DeclaredParameter],
        *,
        table_function: bool,
    ) -> tuple[str, dict[str, Any]]:
        """Return ``(sql, binds)`` for a source call."""
        supplied = {k.casefold(): v for k, v in parameters.items()}
        binds: dict[str, Any] = {}
        if table_function:
            placeholders = []
            for i, p in enumerate(declared):
                key = f"p{i}"
                binds[key] = supplied.get(p.name.casefold())
                placeholders.append(f":{key}")
            return f"SELECT * FROM {name}({', '.join(placeholders)})", binds

        assignments = []
        for i, p in enumerate(declared):
            if p.name.casefold() not in supplied:
                continue
            key = f"p{i}"
            binds[key] = supplied[p.name.casefold()]
            assignments.append(f"@{p.name}=:{key}")
        sql = f"EXEC {name}" + (f" {', '.join(assignments)}" if assignments else "")
        return sql, binds

    def execute(self, name: str, parameters: Mapping[str, Any]) -> ResultSet:
        _check_identifier(name)
        error_code = ErrorCode.DB_STORED_PROC_EXECUTION_FAILED
        try:
            table_function = self.is_table_function(name)
            if table_function:
                error_code = ErrorCode.DB_TABLE_FUNC_EXECUTION_FAILED
            declared = self.get_declared_parameters(name)
            sql, binds = self.build_statement(name, parameters, declared, table_function=table_function)
            with self.engine.connect() as conn:
                result = conn.execute(text(sql), binds)
                columns = list(result.keys())
                rows = [dict(row) for row in result.mappings()]
        except SQLAlchemyError as e:
            raise DataSourceError(f"Execution of '{name}' failed", code=error_code, cause=e).with_context(
                source_name=name
            ) from e
        return ResultSet(columns=columns, rows=rows)

    # ------------------------------------------------------------------ #
    # LookupService
    # ------------------------------------------------------------------ #

    def _scalar(self, sql: str, params: Mapping[str, Any] | None = None) -> Any:
        with self.engine.connect() as conn:
            return conn.execute(text(sql), dict(params or {})).scalar()

    def month_name(self, code: int) -> str:
        return self._months.get_or_set(
            ("month", code),
            lambda: self._scalar(self.MONTH_NAME_SQL, {"code": code}) or f"חודש {code}",
        )

    def period_name(self, code: int) -> str:
        return self._months.get_or_set(
            ("period", code),
            lambda: self._scalar(self.PERIOD_NAME_SQL, {"code": code}) or f"תקופה {code}",
        )

    def charge_type_name(self, code: int) -> str:
        return self._charge_types.get_or_set(
            code,
            lambda: self._scalar(self.CHARGE_TYPE_NAME_SQL, {"code": code}) or f"סוג חיוב {code}",
        )

    def settlement_name(self, code: int) -> str:
        return self._settlements.get_or_set(
            code,
            lambda: self._scalar(self.SETTLEMENT_NAME_SQL, {"code": code}) or f"יישוב {code}",
        )

    def organization_name(self) -> str:
        return self._organization.get_or_set(
            "organization",
            lambda: self._scalar(self.ORGANIZATION_NAME_SQL) or "מועצה לא ידועה",
        )

    def clear_caches(self) -> None:
        for cache in (self._months, self._charge_types, self._settlements, self._organization, self._mappings):
            cache.clear()
