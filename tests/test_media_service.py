"""Unit tests for Cloudinary uploads. HTTP is mocked."""

import io
import os
import sys

sys.path.insert(0, os.path.join(os.path.dirname(__file__), '..'))

import pytest
from unittest.mock import MagicMock, patch

from media_service import (
    UploadError,
    folder_for_address,
    rehost_remote_images,
    upload_file,
    upload_remote,
    validate_upload,
)


def _ok(url):
    resp = MagicMock()
    resp.ok = True
    resp.status_code = 200
    resp.json.return_value = {'secure_url': url}
    return resp


class TestValidateUpload:

    def test_accepts_png(self):
        validate_upload('a.png', 'image/png', 1024)

    def test_rejects_type(self):
        with pytest.raises(UploadError, match='Invalid file type: application/pdf'):
            validate_upload('a.pdf', 'application/pdf', 1024)

    def test_rejects_size(self):
        with pytest.raises(UploadError, match=r'File too large: 11\.0MB\. Max size is 10MB\.'):
            validate_upload('a.jpg', 'image/jpeg', 11 * 1024 * 1024, max_bytes=10 * 1024 * 1024)


class TestFolder:

    def test_slugged_address(self):
        assert folder_for_address('1 Ocean Dr, Miami FL', root='concierge') == 'concierge/properties/1-ocean-dr-miami-fl'

    def test_empty_address(self):
        assert folder_for_address(None, root='c') == 'c/properties/untitled'


class TestUploads:

    @patch('media_service.requests.post')
    def test_upload_file(self, mock_post):
        mock_post.return_value = _ok('https://res.cloudinary.com/demo/a.png')
        url = upload_file(io.BytesIO(b'png'), 'a.png', 'image/png', folder='f', cloud_name='demo', upload_preset='p')
        assert url == 'https://res.cloudinary.com/demo/a.png'
        args, kwargs = mock_post.call_args
        assert args[0] == 'https://api.cloudinary.com/v1_1/demo/image/upload'
        assert kwargs['data'] == {'upload_preset': 'p', 'folder': 'f'}

    def test_not_configured(self):
        with pytest.raises(UploadError, match='not configured'):
            upload_remote('https://img/1.jpg', cloud_name='', upload_preset='p')

    @patch('media_service.requests.post')
    def test_error_status(self, mock_post):
        mock_post.return_value = MagicMock(ok=False, status_code=400)
        with pytest.raises(UploadError):
            upload_remote('https://img/1.jpg', cloud_name='demo')

    @patch('media_service.requests.post')
    def test_rehost_skips_failures(self, mock_post):
        mock_post.side_effect = [_ok('https://cdn/1.jpg'), MagicMock(ok=False, status_code=500), _ok('https://cdn/3.jpg')]
        out = rehost_remote_images(['https://a/1', 'https://a/2', 'https://a/3'], folder='f', cloud_name='demo')
        assert out == ['https://cdn/1.jpg', 'https://cdn/3.jpg']

    @patch('media_service.requests.post')
    def test_rehost_falls_back_to_originals(self, mock_post):
        mock_post.return_value = MagicMock(ok=False, status_code=500)
        urls = ['https://a/1', 'https://a/2']
        assert rehost_remote_images(urls, folder='f', cloud_name='demo') == urls
