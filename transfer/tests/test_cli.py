"""Tests for CLI module."""

import json

from transfer.cli import cmd_export, cmd_upload, create_parser, get_config, main
from transfer.errors import NetworkError
from transfer.transfer_stats import ExportStats, UploadStats


class TestCreateParser:
    """Tests for argument parser creation."""

    def test_upload_command(self):
        """Test upload command parsing."""
        args = create_parser().parse_args(['upload', '-c', 'job.json', '--folder', 'trips', '--concurrency', '3'])

        assert args.command == 'upload'
        assert args.config == 'job.json'
        assert args.folder == 'trips'
        assert args.concurrency == 3

    def test_export_command(self):
        """Test export command parsing with repeated ids."""
        args = create_parser().parse_args(['export', '-d', 'out', '--id', 'a', '--id', 'b', '-q'])

        assert args.command == 'export'
        assert args.dest == 'out'
        assert args.id == ['a', 'b']
        assert args.quiet is True


class TestGetConfig:
    """Tests for environment and flag handling."""

    def test_env_and_overrides(self, monkeypatch):
        monkeypatch.setenv('API_BASE_URL', 'http://env.example:9000')
        monkeypatch.setenv('TRANSFER_CONCURRENCY', '7')
        args = create_parser().parse_args(['upload', '-c', 'job.json', '--timeout', '5'])

        config = get_config(args)

        assert config.api_base_url == 'http://env.example:9000'
        assert config.concurrency == 7
        assert config.timeout == 5.0

    def test_flag_wins(self, monkeypatch):
        monkeypatch.setenv('API_BASE_URL', 'http://env.example:9000')
        args = create_parser().parse_args(['upload', '-c', 'job.json', '--api-url', 'http://flag.example'])

        assert get_config(args).api_base_url == 'http://flag.example'


class TestMain:
    """Tests for main entry point."""

    def test_no_command(self):
        """Test running without command shows help."""
        assert main([]) == 1


class TestCmdUpload:
    """Tests for upload command."""

    def test_missing_job_file(self, tmp_path):
        args = create_parser().parse_args(['upload', '-c', str(tmp_path / 'missing.json')])

        assert cmd_upload(args) == 1

    def test_invalid_url(self, tmp_path):
        job = tmp_path / 'job.json'
        job.write_text('[]')
        args = create_parser().parse_args(['upload', '-c', str(job), '--api-url', 'ftp://nope'])

        assert cmd_upload(args) == 1

    def test_success(self, tmp_path, mocker, capsys):
        job = tmp_path / 'job.json'
        job.write_text(json.dumps([{'folderPath': str(tmp_path), 'extensions': ['jpg']}]))
        run_upload = mocker.patch('transfer.cli.run_upload', new_callable=mocker.AsyncMock,
                                  return_value=UploadStats(total=2, succeeded=2, total_bytes=2048))
        args = create_parser().parse_args(['upload', '-c', str(job), '--folder', 'trips'])

        assert cmd_upload(args) == 0

        entries, folder = run_upload.call_args.args[1:3]
        assert entries[0].folder_path == str(tmp_path)
        assert folder == 'trips'
        assert 'Uploaded: 2' in capsys.readouterr().out

    def test_failures_exit_nonzero(self, tmp_path, mocker):
        job = tmp_path / 'job.json'
        job.write_text('[]')
        mocker.patch('transfer.cli.run_upload', new_callable=mocker.AsyncMock,
                     return_value=UploadStats(total=2, succeeded=1, failed=1))
        args = create_parser().parse_args(['upload', '-c', str(job), '-q'])

        assert cmd_upload(args) == 1


class TestCmdExport:
    """Tests for export command."""

    def test_success(self, tmp_path, mocker):
        run_export = mocker.patch('transfer.cli.run_export', new_callable=mocker.AsyncMock,
                                  return_value=ExportStats(total=1, succeeded=1, destination=str(tmp_path)))
        args = create_parser().parse_args(['export', '-d', str(tmp_path), '--folder', 'trips', '--id', 'x'])

        assert cmd_export(args) == 0

        _, dest, folder, mime_type, ids = run_export.call_args.args[:5]
        assert (dest, folder, mime_type, ids) == (str(tmp_path), 'trips', None, ['x'])

    def test_server_unreachable(self, tmp_path, mocker):
        mocker.patch('transfer.cli.run_export', new_callable=mocker.AsyncMock,
                     side_effect=NetworkError('connection refused'))
        args = create_parser().parse_args(['export', '-d', str(tmp_path)])

        assert cmd_export(args) == 1
