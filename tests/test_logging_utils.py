# tests/test_logging_utils.py
import logging
import os
import time
from pathlib import Path

import pytest

from tablegate import logging_utils
from tablegate.defaults import settings
from tablegate.logging_utils import ErrorCountHandler, cleanup_old_logs, errors_logged, setup_logging


@pytest.fixture(autouse=True)
def restore_root_logger():
    """setup_logging() replaces the root handlers; put the originals back afterwards."""
    root = logging.getLogger()
    handlers, level = list(root.handlers), root.level
    yield
    for handler in list(root.handlers):
        root.removeHandler(handler)
        if handler not in handlers:
            handler.close()
    for handler in handlers:
        root.addHandler(handler)
    root.setLevel(level)
    logging_utils._error_handler = None
    logging_utils._main_log_path = None
    logging_utils._error_log_path = None


def make_record(level, msg='test'):
    return logging.LogRecord(name='test', level=level, pathname='', lineno=0, msg=msg, args=(), exc_info=None)


class TestErrorCountHandler:
    """Test ErrorCountHandler class functionality."""

    def test_counts_errors_and_critical(self):
        handler = ErrorCountHandler()
        handler.emit(make_record(logging.ERROR))
        handler.emit(make_record(logging.INFO))
        handler.emit(make_record(logging.CRITICAL))
        assert handler.error_count == 2

    def test_ignores_lower_levels(self):
        handler = ErrorCountHandler()
        for level in (logging.DEBUG, logging.INFO, logging.WARNING):
            handler.emit(make_record(level))
        assert handler.error_count == 0

    def test_error_log_opened_lazily(self, tmp_path):
        error_log = tmp_path / 'run_error.log'
        handler = ErrorCountHandler(error_log_path=str(error_log))
        handler.emit(make_record(logging.WARNING))
        assert not error_log.exists()
        handler.emit(make_record(logging.ERROR))
        assert error_log.exists()
        assert handler._error_file_handler in logging.getLogger().handlers


class TestSetupLogging:
    """Test setup_logging() configuration."""

    def test_returns_paths(self, tmp_path):
        main_log, error_log = setup_logging('price_sync', log_dir=str(tmp_path), console=False)
        assert Path(main_log).parent == tmp_path
        assert Path(main_log).name.startswith('price_sync_')
        assert error_log.endswith('_error.log')
        assert Path(main_log).exists()
        assert not Path(error_log).exists()

    def test_settings_defaults(self, tmp_path):
        """Arguments left unset come from settings['logging']."""
        settings['logging'] = {**settings['logging'], 'directory': str(tmp_path), 'filename_format': '',
                               'level': 'warning'}
        main_log, _ = setup_logging('nightly', console=False)
        assert main_log == str(tmp_path / 'nightly.log')
        assert logging.getLogger().level == logging.WARNING

    def test_replaces_handlers(self, tmp_path):
        setup_logging('first', log_dir=str(tmp_path), console=False)
        setup_logging('second', log_dir=str(tmp_path), console=False)
        file_handlers = [h for h in logging.getLogger().handlers if isinstance(h, logging.FileHandler)]
        assert len(file_handlers) == 1

    def test_debug_records_reach_file(self, tmp_path):
        main_log, _ = setup_logging('sql', log_dir=str(tmp_path), level='DEBUG', console=False)
        logging.getLogger('tablegate.cursors').debug('INSERT INTO `products`')
        for handler in logging.getLogger().handlers:
            handler.flush()
        assert 'INSERT INTO `products`' in Path(main_log).read_text()


class TestErrorsLogged:
    """Test errors_logged() function."""

    def test_not_set_up(self):
        assert errors_logged() is None

    def test_no_errors_returns_none(self, tmp_path):
        setup_logging('test_script', log_dir=str(tmp_path), console=False)
        logging.info("This is just info")
        logging.warning("This is a warning")
        assert errors_logged() is None

    def test_with_errors_split(self, tmp_path):
        _, error_log = setup_logging('test_script', log_dir=str(tmp_path), split_errors=True, console=False)
        logging.error("Bulk update failed")
        assert errors_logged() == error_log
        for handler in logging.getLogger().handlers:
            handler.flush()
        assert Path(error_log).read_text().count('Bulk update failed') == 1

    def test_with_errors_not_split(self, tmp_path):
        main_log, error_log = setup_logging('test_script', log_dir=str(tmp_path), split_errors=False,
                                            console=False)
        assert error_log is None
        logging.critical("Connection lost")
        assert errors_logged() == main_log


class TestCleanupOldLogs:
    """Test cleanup_old_logs() retention."""

    @pytest.fixture
    def log_dir(self, tmp_path):
        old = time.time() - 45 * 86400
        for name in ('old_1.log', 'old_2.log'):
            path = tmp_path / name
            path.write_text('old')
            os.utime(path, (old, old))
        (tmp_path / 'recent.log').write_text('new')
        (tmp_path / 'notes.txt').write_text('keep')
        os.utime(tmp_path / 'notes.txt', (old, old))
        return tmp_path

    def test_deletes_old_logs(self, log_dir):
        deleted = cleanup_old_logs(str(log_dir), retention_days=30)
        assert sorted(Path(p).name for p in deleted) == ['old_1.log', 'old_2.log']
        assert sorted(p.name for p in log_dir.iterdir()) == ['notes.txt', 'recent.log']

    def test_dry_run(self, log_dir):
        deleted = cleanup_old_logs(str(log_dir), retention_days=30, dry_run=True)
        assert len(deleted) == 2
        assert (log_dir / 'old_1.log').exists()

    def test_longer_retention(self, log_dir):
        assert cleanup_old_logs(str(log_dir), retention_days=60) == []

    def test_missing_directory(self, tmp_path):
        assert cleanup_old_logs(str(tmp_path / 'nope')) == []
