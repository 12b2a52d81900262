"""Tests for the in-memory StubSession."""

from multidict import CIMultiDict

from request_pipeline.errors import TransportError, TransportErrorCode
from request_pipeline.session.base import TransportRequest
from request_pipeline.testing import StubNotAllowedError, StubRequest, StubSession


def make_request(method="GET", url="http://example.test/", **headers):
    return TransportRequest(method=method, url=url, headers=CIMultiDict(headers))


class Completion:
    def __init__(self):
        self.calls = []

    def __call__(self, data, response, error):
        self.calls.append((data, response, error))


class TestStubRequestMatching:
    """Method, URL and required headers."""

    def test_matches_method_and_url(self):
        assert StubRequest.get("http://example.test/").matches(make_request("GET"))
        assert StubRequest.get("http://example.test/").matches(make_request("get"))
        assert not StubRequest.get("http://example.test/").matches(make_request("POST"))
        assert StubRequest.post("http://example.test/").matches(make_request("POST"))
        assert StubRequest.put("http://example.test/").matches(make_request("PUT"))
        assert StubRequest.delete("http://example.test/").matches(make_request("DELETE"))

    def test_url_must_match_exactly(self):
        assert not StubRequest.get("http://example.test/a").matches(make_request())

    def test_required_headers(self):
        stub = StubRequest.get("http://example.test/", headers={"foo": "bar"})

        assert not stub.matches(make_request())
        assert stub.matches(make_request(foo="bar"))
        assert not stub.matches(make_request(foo="baz"))


class TestStubSession:

    def test_one_shot_delivers_on_resume(self):
        session = StubSession()
        session.allow(StubRequest.get("http://example.test/"), status=200, body="1")
        completion = Completion()

        task = session.issue_one_shot(make_request(), completion)
        assert completion.calls == []
        task.resume()

        data, response, error = completion.calls[0]
        assert data == b"1"
        assert response.status == 200
        assert response.content_type == "application/json"
        assert response.content_length == 1
        assert error is None

    def test_content_length_merged_into_custom_headers(self):
        session = StubSession()
        session.allow(
            StubRequest.get("http://example.test/"),
            status=200,
            headers={"Content-Type": "text/plain", "Content-Length": "999"},
            body="abc",
        )
        completion = Completion()
        session.issue_one_shot(make_request(), completion).resume()

        response = completion.calls[0][1]
        assert response.headers["Content-Type"] == "text/plain"
        assert response.headers["Content-Length"] == "3"

    def test_error_stub(self):
        session = StubSession()
        error = TransportError(TransportErrorCode.TIMED_OUT)
        session.allow_error(StubRequest.get("http://example.test/"), error)
        completion = Completion()

        session.issue_one_shot(make_request(), completion).resume()

        assert completion.calls == [(None, None, error)]

    def test_unmatched_request_not_allowed(self):
        session = StubSession()
        completion = Completion()

        session.issue_one_shot(make_request("POST"), completion).resume()

        error = completion.calls[0][2]
        assert isinstance(error, StubNotAllowedError)
        assert "POST http://example.test/ is not allowed here" in str(error)

    def test_first_matching_stub_wins_and_reset(self):
        session = StubSession()
        session.allow(StubRequest.get("http://example.test/"), status=200, body="1")
        session.allow(StubRequest.get("http://example.test/"), status=500)
        completion = Completion()
        session.issue_one_shot(make_request(), completion).resume()
        assert completion.calls[0][1].status == 200

        session.reset()
        assert session.calls == []
        session.issue_one_shot(make_request(), completion).resume()
        assert isinstance(completion.calls[1][2], StubNotAllowedError)

    def test_records_calls(self):
        session = StubSession()
        request = make_request()
        session.issue_one_shot(request, Completion())
        assert session.calls == [request]
