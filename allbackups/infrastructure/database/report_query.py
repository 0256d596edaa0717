"""Runs report queries built as raw SQL fragments."""

from collections.abc import Iterator, Mapping
from typing import Any

from sqlalchemy import CursorResult, text
from sqlmodel import Session

from ...application.query_builder import BackupQuery


class SqlReportQueryRunner:
    def __init__(self, session: Session):
        self.session = session

    def _execute(self, sql: str, params: Mapping[str, Any]) -> CursorResult[Any]:
        return self.session.connection().execute(text(sql), dict(params))

    def count(self, query: BackupQuery) -> int:
        return int(self._execute(query.count_sql(), query.params).scalar_one())

    def fetch_page(
        self, query: BackupQuery, order_by: str, limit: int, offset: int
    ) -> list[Mapping[str, Any]]:
        sql = query.select_sql(order_by) + " LIMIT :page_limit OFFSET :page_offset"
        params = {**query.params, "page_limit": limit, "page_offset": offset}
        return [dict(row) for row in self._execute(sql, params).mappings()]

    def iterate(self, query: BackupQuery, order_by: str) -> Iterator[Mapping[str, Any]]:
        result = self._execute(query.select_sql(order_by), query.params)
        for row in result.mappings():
            yield dict(row)
