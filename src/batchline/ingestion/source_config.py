from typing import Literal

from pydantic import Field

from batchline.core import settings
from batchline.core.errors import ConfigurationError, SchemaMismatchError
from batchline.core.macros import substitute_macros
from batchline.core.models import StrictBaseModel
from batchline.ingestion.domain import BoundaryMode, ImportSpec
from batchline.ingestion.field_case import FieldCase


class SourceConfig(StrictBaseModel):
    """
    Database source read with a configurable SQL query.

    importQuery must contain '$CONDITIONS', e.g. 'SELECT * FROM orders WHERE $CONDITIONS';
    the placeholder is replaced by a range over splitBy derived from boundingQuery
    (e.g. 'SELECT MIN(id), MAX(id) FROM orders'). boundingQuery and splitBy are
    only optional when numSplits is 1.
    """
    reference_name: str | None = Field(default=None, alias="referenceName")

    jdbc_plugin_type: str = Field(default=settings.DEFAULT_JDBC_PLUGIN_TYPE, alias="jdbcPluginType")
    jdbc_plugin_name: str = Field(alias="jdbcPluginName")
    connection_string: str = Field(alias="connectionString")
    user: str | None = None
    password: str | None = None
    table_name: str | None = Field(default=None, alias="tableName")

    import_query: str = Field(alias="importQuery")
    bounding_query: str | None = Field(default=None, alias="boundingQuery")
    split_by: str | None = Field(default=None, alias="splitBy")
    num_splits: int | None = Field(default=None, alias="numSplits")
    boundary_mode: Literal["open_edges", "closed"] = Field(default="open_edges", alias="boundaryMode")

    column_name_case: str | None = Field(default=None, alias="columnNameCase")

    def validate_settings(self) -> None:
        if self.num_splits is not None and self.num_splits < 1:
            raise ConfigurationError(f"numSplits must be a positive integer, got {self.num_splits}.")

        not_one_split = self.num_splits is None or self.num_splits != 1
        if not_one_split and settings.CONDITIONS_TOKEN not in self.import_query:
            raise ConfigurationError(
                f"Import Query {self.import_query} must contain the string '{settings.CONDITIONS_TOKEN}'."
            )
        if not_one_split and (not self.bounding_query or not self.split_by):
            raise ConfigurationError(
                "The boundingQuery and splitBy settings must both be specified, or numSplits must be set to 1."
            )

        if self.password is not None and self.user is None:
            raise ConfigurationError("The user setting must be set in order to set password.")

        try:
            FieldCase.parse(self.column_name_case)
        except SchemaMismatchError as e:
            raise ConfigurationError(f"Invalid columnNameCase: {e}") from e

    @property
    def field_case(self) -> FieldCase:
        return FieldCase.parse(self.column_name_case)

    def to_import_spec(self, logical_time_millis: int | None = None) -> ImportSpec:
        """Build the import spec, resolving ${logicalStartTime(...)} macros when a logical time is given."""
        import_query = self.import_query
        bounding_query = self.bounding_query
        if logical_time_millis is not None:
            import_query = substitute_macros(import_query, logical_time_millis)
            bounding_query = substitute_macros(bounding_query, logical_time_millis)

        return ImportSpec(
            import_query=import_query,
            bounding_query=bounding_query,
            split_column=self.split_by or None,
            split_count=self.num_splits,
            boundary_mode=BoundaryMode(self.boundary_mode),
        )
