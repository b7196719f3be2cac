"""
Unit tests for the Kerberos (SPNEGO) session negotiation
"""

import asyncio
import sys
import types

import pytest
import requests
import responses

from trira import (
    CredentialNegotiator,
    GSSClientContext,
    NegotiationForbiddenError,
    NegotiationProtocolError,
    NegotiationState,
)
from trira.kerberos_auth import extract_session_cookie, parse_negotiate_challenge

HOST = "issues.example.com"
GSS_URL = f"https://{HOST}:443/step-auth-gss"


class TestParseNegotiateChallenge:
    """Test parse_negotiate_challenge()"""

    def test_token(self):
        assert parse_negotiate_challenge("Negotiate xyz") == "xyz"

    def test_bare_scheme(self):
        """Should give an empty token for a bare Negotiate challenge"""
        assert parse_negotiate_challenge("Negotiate") == ""

    def test_case_insensitive_scheme(self):
        assert parse_negotiate_challenge("negotiate YWJj==") == "YWJj=="

    def test_among_other_schemes(self):
        """Should find Negotiate in a folded multi-scheme header"""
        assert parse_negotiate_challenge('Basic realm="jira", Negotiate') == ""

    @pytest.mark.parametrize("header", [None, "", 'Basic realm="jira"'])
    def test_no_negotiate_challenge(self, header):
        assert parse_negotiate_challenge(header) is None


class TestExtractSessionCookie:
    """Test extract_session_cookie()"""

    def test_strips_attributes(self):
        assert extract_session_cookie("JSESSIONID=abc123; Path=/") == "JSESSIONID=abc123"

    def test_picks_session_cookie_among_others(self):
        """Should ignore other cookies folded into the same header"""
        header = (
            "atlassian.xsrf.token=XYZ; Path=/, "
            "JSESSIONID=abc123; Path=/; Secure; HttpOnly, "
            "seraph.rememberme.cookie=r; Expires=Wed, 21 Oct 2026 07:28:00 GMT"
        )
        assert extract_session_cookie(header) == "JSESSIONID=abc123"

    def test_suffixed_cookie_name(self):
        """Should accept cookie names starting with JSESSIONID"""
        assert extract_session_cookie("JSESSIONID.node1=xyz; Path=/") == "JSESSIONID.node1=xyz"

    @pytest.mark.parametrize("header", [None, "", "other=1; Path=/"])
    def test_missing(self, header):
        assert extract_session_cookie(header) is None


class TestCredentialNegotiator:
    """Test CredentialNegotiator.negotiate()"""

    @responses.activate
    def test_successful_handshake(self, gss_contexts):
        """Should answer the challenge and return only JSESSIONID=<value>"""
        responses.add(
            responses.GET, GSS_URL, status=401, headers={"WWW-Authenticate": "Negotiate xyz"}
        )
        responses.add(
            responses.GET,
            GSS_URL,
            status=200,
            headers={"Set-Cookie": "JSESSIONID=abc123; Path=/"},
        )
        negotiator = CredentialNegotiator(HOST, context_factory=gss_contexts)

        cookie = asyncio.run(negotiator.negotiate())

        assert cookie == "JSESSIONID=abc123"
        assert negotiator.state is NegotiationState.AUTHENTICATED

        assert len(responses.calls) == 2
        assert "Authorization" not in responses.calls[0].request.headers
        assert responses.calls[1].request.headers["Authorization"] == "Negotiate dG9rZW4="

        # Exactly one context, for the host's HTTP principal, fed the challenge token
        assert len(gss_contexts.created) == 1
        context = gss_contexts.created[0]
        assert context.service == f"HTTP@{HOST}"
        assert context.challenges == ["xyz"]
        assert context.released

    @responses.activate
    def test_forbidden_on_first_request(self, gss_contexts):
        """Should fail with NegotiationForbiddenError and send no second request"""
        responses.add(responses.GET, GSS_URL, status=403)
        negotiator = CredentialNegotiator(HOST, context_factory=gss_contexts)

        with pytest.raises(NegotiationForbiddenError, match="forbidden") as exc_info:
            asyncio.run(negotiator.negotiate())

        assert exc_info.value.status_code == 403
        assert len(responses.calls) == 1
        assert gss_contexts.created == []
        assert negotiator.state is NegotiationState.FAILED

    @responses.activate
    def test_forbidden_on_second_request(self, gss_contexts):
        """Should fail with NegotiationForbiddenError and still release the context"""
        responses.add(
            responses.GET, GSS_URL, status=401, headers={"WWW-Authenticate": "Negotiate xyz"}
        )
        responses.add(responses.GET, GSS_URL, status=403)
        negotiator = CredentialNegotiator(HOST, context_factory=gss_contexts)

        with pytest.raises(NegotiationForbiddenError):
            asyncio.run(negotiator.negotiate())

        assert len(gss_contexts.created) == 1
        assert gss_contexts.created[0].released

    @responses.activate
    def test_missing_challenge_header(self, gss_contexts):
        """Should fail with a protocol error when 401 carries no Negotiate challenge"""
        responses.add(responses.GET, GSS_URL, status=401)
        negotiator = CredentialNegotiator(HOST, context_factory=gss_contexts)

        with pytest.raises(NegotiationProtocolError, match="Negotiate challenge"):
            asyncio.run(negotiator.negotiate())

        assert gss_contexts.created == []
        assert negotiator.state is NegotiationState.FAILED

    @responses.activate
    def test_unexpected_first_status(self, gss_contexts):
        """Should fail when the first response is not a challenge"""
        responses.add(responses.GET, GSS_URL, status=200)
        negotiator = CredentialNegotiator(HOST, context_factory=gss_contexts)

        with pytest.raises(NegotiationProtocolError) as exc_info:
            asyncio.run(negotiator.negotiate())

        assert exc_info.value.status_code == 200

    @responses.activate
    def test_token_rejected(self, gss_contexts):
        """Should fail when the second response is another 401"""
        for _ in range(2):
            responses.add(
                responses.GET, GSS_URL, status=401, headers={"WWW-Authenticate": "Negotiate"}
            )
        negotiator = CredentialNegotiator(HOST, context_factory=gss_contexts)

        with pytest.raises(NegotiationProtocolError, match="not accepted"):
            asyncio.run(negotiator.negotiate())

        assert len(responses.calls) == 2
        assert gss_contexts.created[0].released

    @responses.activate
    def test_missing_session_cookie(self, gss_contexts):
        """Should fail when the 200 response sets no JSESSIONID cookie"""
        responses.add(
            responses.GET, GSS_URL, status=401, headers={"WWW-Authenticate": "Negotiate xyz"}
        )
        responses.add(responses.GET, GSS_URL, status=200, headers={"Set-Cookie": "other=1"})
        negotiator = CredentialNegotiator(HOST, context_factory=gss_contexts)

        with pytest.raises(NegotiationProtocolError, match="JSESSIONID"):
            asyncio.run(negotiator.negotiate())

    @responses.activate
    def test_transport_error(self, gss_contexts):
        """Should wrap connection failures into a protocol error"""
        responses.add(responses.GET, GSS_URL, body=requests.ConnectionError("refused"))
        negotiator = CredentialNegotiator(HOST, context_factory=gss_contexts)

        with pytest.raises(NegotiationProtocolError, match="Unable to reach") as exc_info:
            asyncio.run(negotiator.negotiate())

        assert isinstance(exc_info.value.__cause__, requests.ConnectionError)

    @responses.activate
    def test_context_released_when_step_fails(self, gss_contexts):
        """Should release the security context when building the token fails"""
        responses.add(
            responses.GET, GSS_URL, status=401, headers={"WWW-Authenticate": "Negotiate xyz"}
        )

        def failing_factory(service):
            context = gss_contexts(service)

            def step(challenge):
                raise NegotiationProtocolError("Kerberos auth failed: no ticket", host=service)

            context.step = step
            return context

        negotiator = CredentialNegotiator(HOST, context_factory=failing_factory)

        with pytest.raises(NegotiationProtocolError, match="no ticket"):
            asyncio.run(negotiator.negotiate())

        assert gss_contexts.created[0].released
        assert len(responses.calls) == 1

    def test_url_and_principal(self):
        negotiator = CredentialNegotiator(HOST)
        assert negotiator.url == GSS_URL
        assert negotiator.service_principal == "HTTP@issues.example.com"
        assert negotiator.state is NegotiationState.INIT

    @responses.activate
    def test_unexpected_error_marks_attempt_failed(self):
        """Should leave the negotiator in FAILED whatever the error type"""
        responses.add(
            responses.GET, GSS_URL, status=401, headers={"WWW-Authenticate": "Negotiate xyz"}
        )

        def broken_factory(service):
            raise RuntimeError("context backend crashed")

        negotiator = CredentialNegotiator(HOST, context_factory=broken_factory)

        with pytest.raises(RuntimeError, match="crashed"):
            asyncio.run(negotiator.negotiate())

        assert negotiator.state is NegotiationState.FAILED


@pytest.fixture
def fake_kerberos(monkeypatch):
    """Install a stand-in ``kerberos`` module that records every call"""
    module = types.ModuleType("kerberos")
    module.GSS_C_MUTUAL_FLAG = 2
    module.calls = []
    module.fail_on = set()

    class KrbError(Exception):
        pass

    def authGSSClientInit(service, gssflags=0):
        module.calls.append(("init", service, gssflags))
        if "init" in module.fail_on:
            raise KrbError("No Kerberos credentials available")
        return 1, "ctx-handle"

    def authGSSClientStep(context, challenge):
        module.calls.append(("step", context, challenge))
        if "step" in module.fail_on:
            raise KrbError("Server not found in Kerberos database")
        return 1

    def authGSSClientResponse(context):
        module.calls.append(("response", context))
        return "Y2xpZW50"

    def authGSSClientClean(context):
        module.calls.append(("clean", context))
        return 1

    module.KrbError = KrbError
    module.authGSSClientInit = authGSSClientInit
    module.authGSSClientStep = authGSSClientStep
    module.authGSSClientResponse = authGSSClientResponse
    module.authGSSClientClean = authGSSClientClean
    monkeypatch.setitem(sys.modules, "kerberos", module)
    return module


def _call_names(module):
    return [call[0] for call in module.calls]


class TestGSSClientContext:
    """Test GSSClientContext over the kerberos module"""

    def test_init_step_response_clean_sequence(self, fake_kerberos):
        async def run():
            async with GSSClientContext(f"HTTP@{HOST}") as context:
                return await asyncio.to_thread(context.step, "xyz")

        token = asyncio.run(run())

        assert token == "Y2xpZW50"
        assert fake_kerberos.calls == [
            ("init", f"HTTP@{HOST}", 2),
            ("step", "ctx-handle", "xyz"),
            ("response", "ctx-handle"),
            ("clean", "ctx-handle"),
        ]

    def test_step_failure_mapped_and_context_cleaned_once(self, fake_kerberos):
        fake_kerberos.fail_on.add("step")

        async def run():
            async with GSSClientContext(f"HTTP@{HOST}") as context:
                await asyncio.to_thread(context.step, "xyz")

        with pytest.raises(NegotiationProtocolError, match="Kerberos auth failed") as exc_info:
            asyncio.run(run())

        assert isinstance(exc_info.value.__cause__, fake_kerberos.KrbError)
        assert _call_names(fake_kerberos) == ["init", "step", "clean"]

    def test_init_failure_mapped(self, fake_kerberos):
        """Should map KrbError from init and not clean a context that never existed"""
        fake_kerberos.fail_on.add("init")

        async def run():
            async with GSSClientContext(f"HTTP@{HOST}"):
                pass

        with pytest.raises(NegotiationProtocolError, match="Kerberos init failed"):
            asyncio.run(run())

        assert _call_names(fake_kerberos) == ["init"]

    def test_release_is_idempotent(self, fake_kerberos):
        context = GSSClientContext(f"HTTP@{HOST}")
        context.init()

        context.release()
        context.release()

        assert _call_names(fake_kerberos) == ["init", "clean"]

    def test_explicit_flags(self, fake_kerberos):
        context = GSSClientContext(f"HTTP@{HOST}", flags=0)
        context.init()

        assert fake_kerberos.calls == [("init", f"HTTP@{HOST}", 0)]

    def test_missing_module_gives_install_hint(self, monkeypatch):
        monkeypatch.setitem(sys.modules, "kerberos", None)

        with pytest.raises(NegotiationProtocolError, match=r"pip install 'trira\[kerberos\]'"):
            GSSClientContext(f"HTTP@{HOST}")

    @responses.activate
    def test_default_factory_drives_full_handshake(self, fake_kerberos):
        """Should negotiate a cookie using the real context over the kerberos module"""
        responses.add(
            responses.GET, GSS_URL, status=401, headers={"WWW-Authenticate": "Negotiate xyz"}
        )
        responses.add(
            responses.GET,
            GSS_URL,
            status=200,
            headers={"Set-Cookie": "JSESSIONID=abc123; Path=/"},
        )
        negotiator = CredentialNegotiator(HOST)

        cookie = asyncio.run(negotiator.negotiate())

        assert cookie == "JSESSIONID=abc123"
        assert responses.calls[1].request.headers["Authorization"] == "Negotiate Y2xpZW50"
        assert _call_names(fake_kerberos) == ["init", "step", "response", "clean"]
