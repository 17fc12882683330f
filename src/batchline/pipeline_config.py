from glob import glob
import logging
import os

import yaml
from pydantic import ValidationError as PydanticValidationError

from batchline.core.errors import ConfigurationError
from batchline.core.models import StrictBaseModel
from batchline.ingestion.source_config import SourceConfig
from batchline.sink.sink_config import SinkConfig

logger = logging.getLogger(__name__)


class PipelineSpec(StrictBaseModel):
    """One pipeline file: a database source feeding a time-partitioned sink."""
    name: str
    source: SourceConfig
    sink: SinkConfig

    def validate_settings(self) -> None:
        self.source.validate_settings()
        self.sink.validate_settings()


def load_pipeline_config(file_path: str) -> PipelineSpec:
    with open(file_path, "r") as file:
        config_yaml = yaml.safe_load(file)
    try:
        return PipelineSpec.model_validate(config_yaml)
    except PydanticValidationError as e:
        raise ConfigurationError(f"Error loading pipeline config from {file_path}: {e}") from e


def load_pipeline_configs_from_directory(directory_path: str) -> list[PipelineSpec]:
    file_paths = sorted(glob(os.path.join(directory_path, "*.yaml")))

    configs: dict[str, PipelineSpec] = {}
    for file_path in file_paths:
        try:
            config = load_pipeline_config(file_path)
        except yaml.YAMLError as e:
            raise ConfigurationError(f"Error parsing YAML in {file_path}: {e}") from e

        if config.name in configs:
            raise ConfigurationError(f"Duplicate pipeline config name '{config.name}' found in file: {file_path}")

        configs[config.name] = config

    if not configs:
        logger.warning(f"No pipeline configuration files found in directory: {directory_path}")

    return list(configs.values())
