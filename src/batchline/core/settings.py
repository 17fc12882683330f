import os
from typing import Any
from pathlib import Path

PROJECT_NAME = "batchline"

# Paths
PROJECT_ROOT_DIR = Path(__file__).parent.parent.parent.parent.resolve()

CONFIG_BASE_DIRECTORY_PATH = Path(os.getenv("BATCHLINE_CONFIG_DIR", PROJECT_ROOT_DIR / "configs"))
DATA_DIR = Path(os.getenv("BATCHLINE_DATA_DIR", PROJECT_ROOT_DIR / "data"))
OUTPUT_ROOT_DIR = DATA_DIR / "datasets"
PARTITION_LEDGER_PATH = DATA_DIR / "partitions.duckdb"
LOG_FOLDER = Path(os.getenv("BATCHLINE_LOG_DIR", PROJECT_ROOT_DIR / "logs"))

# Split planning
CONDITIONS_TOKEN = "$CONDITIONS"
ALWAYS_TRUE_CONDITION = "1 = 1"
DEFAULT_NUM_SPLITS = int(os.getenv("BATCHLINE_DEFAULT_NUM_SPLITS", "2"))
MAX_PARALLEL_SPLITS = int(os.getenv("BATCHLINE_MAX_PARALLEL_SPLITS", "8"))

# Source plugins are addressed as <stage>.<pluginType>.<pluginName>
SOURCE_PLUGIN_STAGE = "source"
DEFAULT_JDBC_PLUGIN_TYPE = "jdbc"

# Partitioned output
DEFAULT_TIME_ZONE = "UTC"
PARTITION_FILE_NAME = "part-00000.parquet"


# Logging Configuration

LOGGING_CONFIG: dict[str, Any] = {
    "version": 1,
    "disable_existing_loggers": False,
    "formatters": {
        "standard": {
            "format": "%(asctime)s [%(levelname)s] %(name)s: %(message)s"
        },
    },
    "handlers": {
        "console": {
            "class": "logging.StreamHandler",
            "formatter": "standard",
            "level": "INFO",
        },
        "rotating_file": {
            "class": "logging.handlers.RotatingFileHandler",
            "formatter": "standard",
            "level": "DEBUG",
            "filename": str(LOG_FOLDER / "batchline.log"),
            "maxBytes": 10485760,  # 10MB
            "backupCount": 5,
            "encoding": "utf8",
        },
    },
    "loggers": {
        "": {  # root logger
            "handlers": ["console", "rotating_file"],
            "level": "DEBUG",
            "propagate": True
        },
    }

}
