"""
Property-based tests for the Domain Verifier.

Combines an in-memory DNS resolver, a mocked HTTP transport and an injected
clock to check caching, singleflight and the end-to-end verdicts.
"""

import asyncio

import dns.resolver
import httpx
from hypothesis import given, settings
from hypothesis import strategies as st

from domain_verification.dns_resolver import DnsResolver
from domain_verification.domain_verifier import DomainVerifier
from domain_verification.enums import ErrorCode
from domain_verification.reachability_probe import ReachabilityProbe
from domain_verification.verification_cache import VerificationCache


class FakeClock:
    def __init__(self, now: float = 0.0) -> None:
        self.now = now

    def __call__(self) -> float:
        return self.now


class TableResolver:
    """Resolves A records for known hosts; everything else is NXDOMAIN."""

    def __init__(self, hosts: dict[str, list[str]], gate: asyncio.Event = None) -> None:
        self.hosts = hosts
        self.gate = gate
        self.calls = 0

    async def resolve(self, qname: str, rdtype: str):
        self.calls += 1
        if self.gate is not None:
            await self.gate.wait()
        if qname not in self.hosts:
            raise dns.resolver.NXDOMAIN()
        if rdtype != "A":
            raise dns.resolver.NoAnswer()
        return list(self.hosts[qname])


class ExplodingResolver:
    async def resolve(self, qname: str, rdtype: str):
        raise RuntimeError("resolver crashed")


def ok_handler(request: httpx.Request) -> httpx.Response:
    return httpx.Response(200, headers={"server": "Apache", "content-type": "text/html; charset=UTF-8"})


def make_verifier(resolver, handler=ok_handler, clock=None, ttl=300.0) -> DomainVerifier:
    return DomainVerifier(
        cache=VerificationCache(ttl=ttl, clock=clock or FakeClock()),
        resolver=DnsResolver(resolver=resolver),
        probe=ReachabilityProbe(transport=httpx.MockTransport(handler)),
    )


class TestEndToEndScenarios:
    """Known-good, non-existent and cache administration flows."""

    def test_existing_reachable_domain(self) -> None:
        resolver = TableResolver({"portotheme.com": ["104.21.5.10"]})

        async def run():
            async with make_verifier(resolver) as verifier:
                return await verifier.verify("https://www.portotheme.com/")

        result = asyncio.run(run())
        assert result.is_valid
        assert result.error is None
        data = result.to_dict()
        assert data["details"]["domain"] == "portotheme.com"
        assert data["details"]["dns"] == {"isValid": True, "records": {"A": ["104.21.5.10"]}}
        assert data["details"]["http"]["protocol"] == "https"
        assert data["details"]["http"]["statusCode"] == 200
        assert data["details"]["verifiedAt"]

    def test_non_existent_domain(self) -> None:
        probed = []

        def handler(request: httpx.Request) -> httpx.Response:
            probed.append(request.url)
            return httpx.Response(200)

        async def run():
            async with make_verifier(TableResolver({}), handler) as verifier:
                return await verifier.verify("dfewrwerqedsre.com")

        result = asyncio.run(run())
        assert not result.is_valid
        assert result.error == "Domain dfewrwerqedsre.com does not exist (no DNS records found)"
        assert result.error_code is ErrorCode.DNS_NOT_FOUND
        assert result.details.http is None
        assert result.to_dict()["details"]["http"] is None
        assert probed == []

    def test_unreachable_domain(self) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            raise httpx.ConnectError("refused", request=request)

        async def run():
            resolver = TableResolver({"example.com": ["192.0.2.1"]})
            async with make_verifier(resolver, handler) as verifier:
                return await verifier.verify("example.com")

        result = asyncio.run(run())
        assert not result.is_valid
        assert result.error == "Domain example.com is not reachable via HTTP/HTTPS"
        assert result.details.dns.is_valid

    def test_cache_stats_and_clear(self) -> None:
        resolver = TableResolver({"portotheme.com": ["104.21.5.10"]})

        async def run():
            async with make_verifier(resolver) as verifier:
                await verifier.verify("portotheme.com")
                stats = verifier.get_cache_stats()
                verifier.clear_cache("www.PortoTheme.com")
                return stats, verifier.get_cache_stats()

        before, after = asyncio.run(run())
        assert (before.total_entries, before.valid_entries, before.expired_entries) == (1, 1, 0)
        assert after.total_entries == 0

    def test_invalid_format_skips_network(self) -> None:
        resolver = TableResolver({})

        async def run():
            async with make_verifier(resolver) as verifier:
                return await verifier.verify("localhost")

        result = asyncio.run(run())
        assert not result.is_valid
        assert result.error == "Invalid domain format"
        assert result.error_code is ErrorCode.INVALID_DOMAIN_FORMAT
        assert result.to_dict() == {"isValid": False, "error": "Invalid domain format"}
        assert resolver.calls == 0

    def test_unexpected_failure_is_contained(self) -> None:
        async def run():
            async with make_verifier(ExplodingResolver()) as verifier:
                result = await verifier.verify("example.com")
                return result, verifier.get_cache_stats()

        result, stats = asyncio.run(run())
        assert not result.is_valid
        assert result.error == "Domain verification failed"
        assert result.to_dict()["details"] == {"error": "resolver crashed"}
        assert stats.total_entries == 0


class TestCacheHitProperty:
    """
    Property-based tests for result caching.

    Within the TTL, repeated verification of the same domain performs the
    lookup once; after the TTL it is performed again.
    """

    @given(
        repeats=st.integers(min_value=1, max_value=10),
        elapsed=st.floats(min_value=0.0, max_value=299.0),
    )
    @settings(max_examples=100)
    def test_repeated_calls_within_ttl_hit_cache(self, repeats: int, elapsed: float) -> None:
        clock = FakeClock()
        resolver = TableResolver({"example.com": ["192.0.2.1"]})

        async def run():
            async with make_verifier(resolver, clock=clock) as verifier:
                first = await verifier.verify("example.com")
                clock.now += elapsed
                rest = [await verifier.verify("EXAMPLE.com") for _ in range(repeats)]
                return first, rest

        first, rest = asyncio.run(run())
        assert resolver.calls == 1
        assert all(result is first for result in rest)

    @given(elapsed=st.floats(min_value=300.0, max_value=10_000.0))
    @settings(max_examples=100)
    def test_expired_entry_triggers_fresh_lookup(self, elapsed: float) -> None:
        clock = FakeClock()
        resolver = TableResolver({"example.com": ["192.0.2.1"]})

        async def run():
            async with make_verifier(resolver, clock=clock) as verifier:
                await verifier.verify("example.com")
                clock.now += elapsed
                await verifier.verify("example.com")

        asyncio.run(run())
        assert resolver.calls == 2

    def test_failures_are_cached_too(self) -> None:
        resolver = TableResolver({})

        async def run():
            async with make_verifier(resolver) as verifier:
                await verifier.verify("missing.com")
                await verifier.verify("missing.com")

        asyncio.run(run())
        # One pass through A, AAAA, CNAME
        assert resolver.calls == 3


class TestSingleflightProperty:
    """
    Property-based tests for in-flight deduplication.

    Concurrent callers asking about the same uncached domain share one lookup.
    """

    @given(callers=st.integers(min_value=2, max_value=20))
    @settings(max_examples=50)
    def test_concurrent_callers_share_one_lookup(self, callers: int) -> None:
        async def run():
            gate = asyncio.Event()
            resolver = TableResolver({"example.com": ["192.0.2.1"]}, gate=gate)
            async with make_verifier(resolver) as verifier:
                tasks = [
                    asyncio.ensure_future(verifier.verify("example.com"))
                    for _ in range(callers)
                ]
                await asyncio.sleep(0)
                await asyncio.sleep(0)
                in_flight = verifier.in_flight_count
                gate.set()
                results = await asyncio.gather(*tasks)
                return resolver.calls, in_flight, results, verifier.in_flight_count

        calls, in_flight, results, remaining = asyncio.run(run())
        assert calls == 1
        assert in_flight == 1
        assert remaining == 0
        assert all(result is results[0] for result in results)

    def test_distinct_domains_run_concurrently(self) -> None:
        async def run():
            gate = asyncio.Event()
            resolver = TableResolver({"a.com": ["192.0.2.1"], "b.com": ["192.0.2.2"]}, gate=gate)
            async with make_verifier(resolver) as verifier:
                tasks = [
                    asyncio.ensure_future(verifier.verify(domain))
                    for domain in ("a.com", "b.com")
                ]
                await asyncio.sleep(0)
                await asyncio.sleep(0)
                in_flight = verifier.in_flight_count
                gate.set()
                await asyncio.gather(*tasks)
                return in_flight

        assert asyncio.run(run()) == 2

    def test_cancelled_caller_does_not_cancel_shared_lookup(self) -> None:
        async def run():
            gate = asyncio.Event()
            resolver = TableResolver({"example.com": ["192.0.2.1"]}, gate=gate)
            async with make_verifier(resolver) as verifier:
                first = asyncio.ensure_future(verifier.verify("example.com"))
                second = asyncio.ensure_future(verifier.verify("example.com"))
                await asyncio.sleep(0)
                await asyncio.sleep(0)
                first.cancel()
                gate.set()
                result = await second
                return result, resolver.calls

        result, calls = asyncio.run(run())
        assert result.is_valid
        assert calls == 1
