"""
Property-based tests for the Ownership Verifier.

Uses ``httpx.MockTransport`` to stand in for the website and the
DNS-over-HTTPS endpoint.
"""

import asyncio

import httpx
from hypothesis import given, settings
from hypothesis import strategies as st

from domain_verification.challenge import CODE_ALPHABET
from domain_verification.enums import ErrorCode, VerificationMethod
from domain_verification.models import OwnershipPayload
from domain_verification.ownership_verifier import OwnershipVerifier


code_strategy = st.builds(
    lambda millis, suffix: f"alpus-{millis}-{suffix}",
    st.integers(min_value=1_600_000_000_000, max_value=1_900_000_000_000),
    st.text(alphabet=CODE_ALPHABET, min_size=9, max_size=9),
)

# Codes with regex metacharacters must still match literally
odd_code_strategy = st.text(
    alphabet="abcXYZ0123456789-.+*?()[]$^|",
    min_size=1,
    max_size=30,
)


def run_verify(handler, method, url, code, payload=None):
    async def _run():
        async with OwnershipVerifier(transport=httpx.MockTransport(handler)) as verifier:
            return await verifier.verify(method, url, code, payload)

    return asyncio.run(_run())


def page(head: str) -> str:
    return f"<html><head><title>Blog</title>{head}</head><body>Hello</body></html>"


def no_network(request: httpx.Request) -> httpx.Response:
    raise AssertionError(f"unexpected request to {request.url}")


class TestMetaTagProperty:
    """
    Property-based tests for meta tag verification.

    The page must carry ``<meta name="alpus-verification" content="<code>">``
    with the exact code; matching ignores case and quote style.
    """

    @given(code=st.one_of(code_strategy, odd_code_strategy), quote=st.sampled_from(['"', "'"]))
    @settings(max_examples=100)
    def test_published_code_verifies(self, code: str, quote: str) -> None:
        html = page(f"<meta name={quote}alpus-verification{quote} content={quote}{code}{quote}>")

        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(200, text=html)

        result = run_verify(handler, "meta", "https://blog.example.com", code, OwnershipPayload(meta_tag=code))
        assert result.verified
        assert result.message == "Meta tag verification successful"
        assert result.details == {"metaTagContent": code}
        assert result.method is VerificationMethod.META

    @given(code=code_strategy, other=code_strategy)
    @settings(max_examples=100)
    def test_different_code_does_not_verify(self, code: str, other: str) -> None:
        html = page(f'<meta name="alpus-verification" content="{other}">')

        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(200, text=html)

        result = run_verify(handler, "meta", "https://blog.example.com", code, OwnershipPayload(meta_tag=code))
        assert result.verified == (code == other)

    @given(code=code_strategy, submitted=st.text(min_size=1, max_size=30))
    @settings(max_examples=100)
    def test_evidence_is_the_matched_code(self, code: str, submitted: str) -> None:
        html = page(f'<meta name="alpus-verification" content="{code}">')

        def handler(request: httpx.Request) -> httpx.Response:
            if request.url.host == "dns.google":
                return httpx.Response(200, json={
                    "Status": 0,
                    "Answer": [{"name": "example.com.", "type": 16, "data": f'"alpus-verification={code}"'}],
                })
            return httpx.Response(200, text=html)

        meta = run_verify(handler, "meta", "https://example.com", code, OwnershipPayload(meta_tag=submitted))
        dns_result = run_verify(handler, "dns", "https://example.com", code, OwnershipPayload(dns_record=submitted))
        assert meta.details == {"metaTagContent": code}
        assert dns_result.details == {"dnsRecord": code}

    def test_case_insensitive_tag(self) -> None:
        code = "alpus-1700000000000-abc123xyz"

        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(200, text=page(f'<META NAME="alpus-verification" CONTENT="{code}">'))

        result = run_verify(handler, "meta", "https://blog.example.com", code, OwnershipPayload(meta_tag=code))
        assert result.verified

    def test_missing_tag_scenario(self) -> None:
        code = "alpus-1700000000000-abc123xyz"

        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(200, text=page(""))

        result = run_verify(handler, "meta", "https://blog.example.com", code, OwnershipPayload(meta_tag=code))
        assert not result.verified
        assert result.message == (
            "Meta tag not found on website. Please ensure the tag is added to the <head> section."
        )
        assert result.error_code is ErrorCode.OWNERSHIP_CHECK_FAILED
        assert result.to_dict()["verificationCode"] == code


class TestFileProperty:
    """File verification at ``<url>/alpus-verification.txt``."""

    def test_matching_file_verifies(self) -> None:
        code = "alpus-1700000000000-abc123xyz"
        urls = []

        def handler(request: httpx.Request) -> httpx.Response:
            urls.append(str(request.url))
            return httpx.Response(200, text=f"\n  {code}  \n")

        result = run_verify(
            handler, "file", "https://blog.example.com/", code,
            OwnershipPayload(file_name="alpus-verification.txt"),
        )
        assert result.verified
        assert result.message == "File verification successful"
        assert result.details == {"fileName": "alpus-verification.txt"}
        assert urls == ["https://blog.example.com/alpus-verification.txt"]

    def test_wrong_content(self) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(200, text="something else")

        result = run_verify(
            handler, "file", "https://blog.example.com", "alpus-1-abc",
            OwnershipPayload(file_name="alpus-verification.txt"),
        )
        assert not result.verified
        assert result.message.startswith("File content does not match.")

    @given(status=st.sampled_from([301, 403, 404, 500, 503]))
    @settings(max_examples=20)
    def test_non_success_status_means_missing_file(self, status: int) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            if status == 301:
                return httpx.Response(301)  # No Location header, nothing to follow
            return httpx.Response(status, text="alpus-1-abc")

        result = run_verify(
            handler, "file", "https://blog.example.com", "alpus-1-abc",
            OwnershipPayload(file_name="alpus-verification.txt"),
        )
        assert not result.verified
        assert result.message.startswith("Verification file not found on website.")


class TestDnsProperty:
    """TXT record verification through the DoH JSON endpoint."""

    @staticmethod
    def doh(answers):
        seen = []

        def handler(request: httpx.Request) -> httpx.Response:
            seen.append(request)
            body = {"Status": 0}
            if answers is not None:
                body["Answer"] = answers
            return httpx.Response(200, json=body)

        return handler, seen

    def test_matching_txt_record(self) -> None:
        code = "alpus-1700000000000-abc123xyz"
        handler, seen = self.doh([
            {"name": "example.com.", "type": 16, "data": '"v=spf1 -all"'},
            {"name": "example.com.", "type": 16, "data": f'"alpus-verification={code}"'},
        ])

        result = run_verify(handler, "dns", "https://www.example.com/blog", code, OwnershipPayload(dns_record=code))
        assert result.verified
        assert result.message == "DNS verification successful"
        assert result.details == {"dnsRecord": code}
        request = seen[0]
        assert request.url.host == "dns.google"
        assert request.url.params["name"] == "www.example.com"
        assert request.url.params["type"] == "TXT"
        assert request.headers["accept"] == "application/dns-json"

    def test_non_txt_answers_are_ignored(self) -> None:
        code = "alpus-1-abc"
        handler, _ = self.doh([{"name": "example.com.", "type": 5, "data": f"alpus-verification={code}"}])

        result = run_verify(handler, "dns", "https://example.com", code, OwnershipPayload(dns_record=code))
        assert not result.verified
        assert result.message.startswith("DNS record not found or does not match.")

    def test_no_answer_section(self) -> None:
        handler, _ = self.doh(None)

        result = run_verify(handler, "dns", "https://example.com", "alpus-1-abc", OwnershipPayload(dns_record="x"))
        assert not result.verified
        assert result.message == (
            "No DNS records found. Please ensure the TXT record is properly configured."
        )


class TestSkipAndInputProperty:
    """Skip, invalid method and required-input handling (no network)."""

    def test_skip_always_verifies(self) -> None:
        result = run_verify(no_network, "skip", "https://example.com", None)
        assert result.verified
        assert result.message == "Ownership verification skipped for contributor"
        assert result.method is VerificationMethod.SKIP

    @given(method=st.text(max_size=10).filter(lambda m: m.strip().lower() not in {"meta", "file", "dns", "skip"}))
    @settings(max_examples=100)
    def test_unknown_method(self, method: str) -> None:
        result = run_verify(no_network, method, "https://example.com", "code")
        assert not result.verified
        assert result.message == "Invalid verification method"
        assert result.error_code is ErrorCode.INVALID_METHOD

    def test_method_strings_are_coerced(self) -> None:
        result = run_verify(no_network, " SKIP ", "https://example.com", None)
        assert result.verified

    def test_missing_inputs(self) -> None:
        expectations = {
            "meta": "Meta tag content is required",
            "file": "Verification file is required",
            "dns": "DNS record is required",
        }
        for method, message in expectations.items():
            result = run_verify(no_network, method, "https://example.com", "code", OwnershipPayload())
            assert not result.verified
            assert result.message == message
            assert result.error_code is ErrorCode.OWNERSHIP_INPUT_MISSING

    def test_missing_code(self) -> None:
        result = run_verify(no_network, "file", "https://example.com", None, OwnershipPayload(file_name="f.txt"))
        assert result.message == "Verification code is required"
        assert result.error_code is ErrorCode.OWNERSHIP_INPUT_MISSING


class TestTransportFailureProperty:
    """Network faults in any branch become a transport error result."""

    @given(method=st.sampled_from(["meta", "file", "dns"]))
    @settings(max_examples=20)
    def test_connection_error(self, method: str) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            raise httpx.ConnectError("connection refused", request=request)

        payload = OwnershipPayload(meta_tag="c", file_name="f.txt", dns_record="c")
        result = run_verify(handler, method, "https://example.com", "c", payload)
        assert not result.verified
        assert result.error_code is ErrorCode.TRANSPORT_ERROR
        assert result.message == (
            "Failed to verify ownership. Please check your website is accessible and try again."
        )
        assert result.details == {"error": "connection refused"}

    def test_malformed_doh_response(self) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(200, text="not json")

        result = run_verify(handler, "dns", "https://example.com", "c", OwnershipPayload(dns_record="c"))
        assert result.error_code is ErrorCode.TRANSPORT_ERROR
