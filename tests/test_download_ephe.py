import httpx
import pytest

from download_ephe import BASE_URL, EPHEMERIS_FILES, download_all


def _client(handler):
    return httpx.Client(transport=httpx.MockTransport(handler))


def test_downloads_missing_files(tmp_path):
    requested = []

    def handler(request):
        requested.append(str(request.url))
        return httpx.Response(200, content=b'ephemeris:' + request.url.path.encode())

    target = tmp_path / 'ephe'
    with _client(handler) as client:
        fetched = download_all(str(target), client=client)

    assert fetched == list(EPHEMERIS_FILES)
    assert requested == [BASE_URL + name for name in EPHEMERIS_FILES]
    assert (target / 'seas_18.se1').read_bytes().startswith(b'ephemeris:')
    assert not list(target.glob('*.part'))


def test_existing_files_are_skipped(tmp_path):
    (tmp_path / 'semo_18.se1').write_bytes(b'kept')
    requested = []

    def handler(request):
        requested.append(request.url.path.rsplit('/', 1)[-1])
        return httpx.Response(200, content=b'new')

    with _client(handler) as client:
        fetched = download_all(str(tmp_path), client=client)

    assert fetched == ['sepl_18.se1', 'seas_18.se1']
    assert 'semo_18.se1' not in requested
    assert (tmp_path / 'semo_18.se1').read_bytes() == b'kept'


def test_http_error_leaves_no_partial_file(tmp_path):
    def handler(request):
        return httpx.Response(404)

    with _client(handler) as client:
        with pytest.raises(httpx.HTTPStatusError):
            download_all(str(tmp_path), files=('seas_18.se1',), client=client)

    assert list(tmp_path.iterdir()) == []
