"""
Source configuration validation.

Every rule is checked before a connection is opened, so these tests never
touch a database.
"""

import pytest
from pydantic import ValidationError as PydanticValidationError

from batchline.core.errors import ConfigurationError
from batchline.ingestion.domain import BoundaryMode
from batchline.ingestion.field_case import FieldCase
from batchline.ingestion.source_config import SourceConfig


def _source(**overrides) -> SourceConfig:
    values = {
        "jdbcPluginName": "duckdb",
        "connectionString": "shop.duckdb",
        "importQuery": "SELECT * FROM orders WHERE $CONDITIONS",
        "boundingQuery": "SELECT MIN(id), MAX(id) FROM orders",
        "splitBy": "id",
        "numSplits": 4,
    }
    values.update(overrides)
    return SourceConfig.model_validate({k: v for k, v in values.items() if v is not None})


class TestParsing:
    def test_camel_case_keys(self):
        source = _source(tableName="orders", columnNameCase="upper")
        assert source.jdbc_plugin_type == "jdbc"
        assert source.jdbc_plugin_name == "duckdb"
        assert source.table_name == "orders"
        assert source.field_case is FieldCase.UPPER

    def test_unknown_key_is_rejected(self):
        with pytest.raises(PydanticValidationError):
            _source(fetchSize=100)

    def test_num_splits_must_be_an_integer(self):
        with pytest.raises(PydanticValidationError):
            _source(numSplits="4")

    def test_unknown_boundary_mode_is_rejected(self):
        with pytest.raises(PydanticValidationError):
            _source(boundaryMode="sideways")

    def test_config_is_immutable(self):
        source = _source()
        with pytest.raises(PydanticValidationError):
            source.num_splits = 2


class TestValidateSettings:
    def test_valid_split_config(self):
        _source().validate_settings()

    def test_placeholder_required_for_multiple_splits(self):
        with pytest.raises(ConfigurationError, match=r"\$CONDITIONS"):
            _source(importQuery="SELECT * FROM orders").validate_settings()

    def test_single_split_needs_no_bounding_query_or_split_column(self):
        _source(importQuery="SELECT * FROM orders", boundingQuery=None, splitBy=None, numSplits=1).validate_settings()

    def test_unset_num_splits_requires_bounding_query(self):
        with pytest.raises(ConfigurationError, match="boundingQuery"):
            _source(numSplits=None, boundingQuery=None).validate_settings()

    def test_split_column_required_for_multiple_splits(self):
        with pytest.raises(ConfigurationError, match="splitBy"):
            _source(splitBy=None).validate_settings()

    @pytest.mark.parametrize("num_splits", [0, -3])
    def test_num_splits_must_be_positive(self, num_splits):
        with pytest.raises(ConfigurationError, match="numSplits"):
            _source(numSplits=num_splits).validate_settings()

    def test_password_requires_user(self):
        with pytest.raises(ConfigurationError, match="user"):
            _source(password="secret").validate_settings()

    def test_user_without_password_is_fine(self):
        _source(user="reader").validate_settings()

    def test_invalid_column_name_case(self):
        with pytest.raises(ConfigurationError, match="columnNameCase"):
            _source(columnNameCase="snake").validate_settings()


class TestImportSpec:
    def test_fields_are_carried_over(self):
        spec = _source(boundaryMode="closed").to_import_spec()
        assert spec.import_query == "SELECT * FROM orders WHERE $CONDITIONS"
        assert spec.bounding_query == "SELECT MIN(id), MAX(id) FROM orders"
        assert spec.split_column == "id"
        assert spec.split_count == 4
        assert spec.boundary_mode is BoundaryMode.CLOSED

    def test_default_boundary_mode(self):
        assert _source().to_import_spec().boundary_mode is BoundaryMode.OPEN_EDGES

    def test_macros_resolved_with_logical_time(self, to_millis):
        source = _source(
            importQuery="SELECT * FROM orders WHERE day = '${logicalStartTime(yyyy-MM-dd,1d)}' AND $CONDITIONS",
            boundingQuery="SELECT MIN(id), MAX(id) FROM orders WHERE day = '${logicalStartTime(yyyy-MM-dd,1d)}'",
        )
        spec = source.to_import_spec(logical_time_millis=to_millis(2016, 1, 1))
        assert spec.import_query == "SELECT * FROM orders WHERE day = '2015-12-31' AND $CONDITIONS"
        assert spec.bounding_query.endswith("day = '2015-12-31'")

    def test_macros_left_alone_without_logical_time(self):
        query = "SELECT * FROM orders WHERE day = '${logicalStartTime(yyyy-MM-dd)}' AND $CONDITIONS"
        assert _source(importQuery=query).to_import_spec().import_query == query
