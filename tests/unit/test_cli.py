import signal
import threading
from unittest import mock

import pytest

from s3_to_redshift import cli
from s3_to_redshift.refresh import RefreshStatus, TableResult

ENVIRON = {
    'REDSHIFT_DB': 'warehouse',
    'REDSHIFT_USER': 'loader',
    'REDSHIFT_PASSWORD': 'secret',
}


@pytest.fixture(autouse=True)
def dict_config(mocker):
    return mocker.patch.object(cli.logging.config, 'dictConfig', autospec=True)


@pytest.fixture
def signals(mocker):
    return mocker.patch.object(cli.signal, 'signal', autospec=True)


def test_signal_handler_cancels_refresh(signals, warehouse):
    cancel_event = threading.Event()

    cli.install_signal_handlers(cancel_event, warehouse)

    assert [c.args[0] for c in signals.call_args_list] == [signal.SIGINT, signal.SIGTERM]
    handler = signals.call_args_list[0].args[1]
    handler(signal.SIGINT, None)

    assert cancel_event.is_set()
    assert warehouse.cancelled


def test_run_succeeds(mocker, signals, warehouse, config):
    refresh_tables = mocker.patch.object(
        cli,
        'refresh_tables',
        autospec=True,
        return_value=[TableResult('users', RefreshStatus.DONE)],
    )
    locate_file = mock.Mock()

    assert cli.run(config, warehouse=warehouse, locate_file=locate_file)
    refresh_tables.assert_called_once_with(
        warehouse, config, locate_file, cancel_event=mock.ANY
    )


def test_run_fails_if_any_table_fails(mocker, signals, warehouse, config):
    mocker.patch.object(
        cli,
        'refresh_tables',
        autospec=True,
        return_value=[
            TableResult('users', RefreshStatus.DONE),
            TableResult('events', RefreshStatus.FAILED, error=ValueError('boom')),
        ],
    )

    assert not cli.run(config, warehouse=warehouse, locate_file=mock.Mock())


def test_run_looks_up_bucket_region(mocker, signals, warehouse, config):
    mocker.patch.object(cli, 'refresh_tables', autospec=True, return_value=[])
    get_region = mocker.patch.object(
        cli, 'get_region_for_bucket', autospec=True, return_value='eu-west-2'
    )
    make_file_locator = mocker.patch.object(cli, 'make_file_locator', autospec=True)

    cli.run(config, warehouse=warehouse)

    get_region.assert_called_once_with('metrics')
    make_file_locator.assert_called_once_with(config, 'eu-west-2')


def test_main_exits_on_failure(mocker, caplog):
    mocker.patch.dict('os.environ', ENVIRON, clear=True)
    mocker.patch.object(cli, 'run', autospec=True, return_value=False)

    with caplog.at_level('INFO', logger='s3_to_redshift'):
        with pytest.raises(SystemExit) as e:
            cli.main(['--tables', 'users'])

    assert e.value.code == 1
    assert 'job-finished schema=mongo success=False' in caplog.text


def test_main_success(mocker, caplog):
    mocker.patch.dict('os.environ', ENVIRON, clear=True)
    run = mocker.patch.object(cli, 'run', autospec=True, return_value=True)

    with caplog.at_level('INFO', logger='s3_to_redshift'):
        cli.main(['--tables', 'users,events', '--schema', 'salesforce'])

    assert run.call_args.args[0].tables == ('users', 'events')
    assert 'job-finished schema=salesforce success=True' in caplog.text


def test_main_invalid_configuration(mocker, caplog):
    mocker.patch.dict('os.environ', {}, clear=True)
    run = mocker.patch.object(cli, 'run', autospec=True)

    with pytest.raises(SystemExit) as e:
        cli.main(['--tables', 'users'])

    assert e.value.code == 1
    run.assert_not_called()


def test_main_unexpected_error(mocker):
    mocker.patch.dict('os.environ', ENVIRON, clear=True)
    mocker.patch.object(cli, 'run', autospec=True, side_effect=RuntimeError('boom'))

    with pytest.raises(SystemExit):
        cli.main(['--tables', 'users'])
