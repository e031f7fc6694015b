from s3_to_redshift.logging_config import LOGGING_CONFIG, get_logging_config


def test_get_logging_config_sets_package_level():
    config = get_logging_config('DEBUG')

    assert config['loggers']['s3_to_redshift']['level'] == 'DEBUG'
    assert config['loggers']['s3_to_redshift']['handlers'] == ['console']
    assert config['handlers']['console']['stream'] == 'ext://sys.stdout'


def test_get_logging_config_leaves_defaults_alone():
    level = LOGGING_CONFIG['loggers']['s3_to_redshift']['level']

    get_logging_config('CRITICAL')

    assert LOGGING_CONFIG['loggers']['s3_to_redshift']['level'] == level


def test_get_logging_config_defaults_to_info(monkeypatch):
    monkeypatch.setenv('LOG_LEVEL', 'DEBUG')

    config = get_logging_config()

    assert config['loggers']['s3_to_redshift']['level'] == 'INFO'
    assert config['root']['level'] == 'INFO'
