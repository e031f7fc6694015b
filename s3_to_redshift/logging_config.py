# Overridden from Config.log_level (the LOG_LEVEL env var) once config is loaded
LOG_LEVEL = "INFO"

LOG_FORMAT = (
    "[%(asctime)s] %(levelname)s {%(name)s:%(filename)s:%(lineno)d} - %(message)s"
)

LOGGING_CONFIG: dict = {
    "version": 1,
    "disable_existing_loggers": False,
    "formatters": {"s3_to_redshift": {"format": LOG_FORMAT}},
    "handlers": {
        "console": {
            "class": "logging.StreamHandler",
            "formatter": "s3_to_redshift",
            "stream": "ext://sys.stdout",
        },
    },
    "loggers": {
        "s3_to_redshift": {
            "handlers": ["console"],
            "level": LOG_LEVEL,
            "propagate": False,
        },
        "botocore": {"handlers": ["console"], "level": "WARN", "propagate": False},
        "sqlalchemy.engine": {
            "handlers": ["console"],
            "level": "WARN",
            "propagate": False,
        },
    },
    "root": {"handlers": ["console"], "level": LOG_LEVEL},
}


def get_logging_config(level: str = LOG_LEVEL) -> dict:
    """LOGGING_CONFIG with the package logger set to `level`."""
    config = dict(LOGGING_CONFIG)
    config["loggers"] = dict(LOGGING_CONFIG["loggers"])
    config["loggers"]["s3_to_redshift"] = dict(
        LOGGING_CONFIG["loggers"]["s3_to_redshift"], level=level
    )
    return config
