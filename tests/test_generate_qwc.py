"""
Tests for the .qwc file generator
"""
import pytest
from lxml import etree

from common.config import QBWCConfig
from scripts.generate_qwc import build_qwc, main


@pytest.fixture
def qbwc():
    return QBWCConfig(username='trippinqb', password='x', app_name='Tripp & Co Time Sync')


class TestBuildQwc:
    """Test the Web Connector application file"""

    def test_fields(self, qbwc):
        doc = etree.fromstring(build_qwc(
            qbwc, 'https://bridge.example.com/qbwc', run_every_minutes=30, file_id='{FILE}'
        ).encode('utf-8'))

        assert doc.findtext('AppName') == 'Tripp & Co Time Sync'
        assert doc.findtext('AppURL') == 'https://bridge.example.com/qbwc'
        assert doc.findtext('CertURL') == 'https://bridge.example.com'
        assert doc.findtext('AppSupport') == 'https://bridge.example.com/support'
        assert doc.findtext('UserName') == 'trippinqb'
        assert doc.findtext('FileID') == '{FILE}'
        assert doc.findtext('Scheduler/RunEveryNMinutes') == '30'

    def test_random_file_id(self, qbwc):
        first = etree.fromstring(build_qwc(qbwc, 'https://a.example.com/qbwc').encode('utf-8'))
        second = etree.fromstring(build_qwc(qbwc, 'https://a.example.com/qbwc').encode('utf-8'))

        assert first.findtext('FileID') != second.findtext('FileID')

    def test_relative_url_rejected(self, qbwc):
        with pytest.raises(ValueError):
            build_qwc(qbwc, '/qbwc')


class TestMain:
    """Test the command line entry point"""

    def test_writes_file(self, tmp_path):
        output = tmp_path / 'out' / 'sync.qwc'

        assert main(['--app-url', 'https://bridge.example.com/qbwc', '--output', str(output)]) == 0
        assert '<AppURL>https://bridge.example.com/qbwc</AppURL>' in output.read_text()

    def test_bad_url_exits(self, tmp_path):
        with pytest.raises(SystemExit):
            main(['--app-url', 'not a url', '--output', str(tmp_path / 'x.qwc')])
