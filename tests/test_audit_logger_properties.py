"""
Property-based tests for Audit Logger module.

Uses Hypothesis for property-based testing of output formats, level
filtering, secret masking and error context.
"""

import json
from io import StringIO

from hypothesis import given, settings, assume
from hypothesis import strategies as st

from domain_verification.enums import LogLevel
from domain_verification.audit_logger import AuditLogger, LEVEL_ORDER


# Strategies for generating valid test data

@st.composite
def log_level_strategy(draw) -> LogLevel:
    """Generate valid LogLevel values."""
    return draw(st.sampled_from(list(LogLevel)))


@st.composite
def component_name_strategy(draw) -> str:
    """Generate valid component names."""
    return draw(st.text(
        alphabet=st.sampled_from("abcdefghijklmnopqrstuvwxyzABCDEFGHIJKLMNOPQRSTUVWXYZ0123456789_-"),
        min_size=1,
        max_size=50,
    ))


@st.composite
def message_strategy(draw) -> str:
    """Generate valid log messages."""
    return draw(st.text(
        alphabet=st.characters(
            whitelist_categories=('L', 'N', 'P', 'S', 'Z'),
            blacklist_characters='\x00\n\r',
        ),
        min_size=1,
        max_size=200,
    ))


@st.composite
def non_sensitive_key_strategy(draw) -> str:
    """Generate keys that are NOT sensitive."""
    key = draw(st.text(
        alphabet=st.sampled_from("abcdefghijklmnopqrstuvwxyz_"),
        min_size=1,
        max_size=20,
    ))
    for pattern in AuditLogger.SENSITIVE_KEYS:
        assume(pattern not in key)
    return key


@st.composite
def sensitive_key_strategy(draw) -> str:
    """Generate keys that ARE sensitive."""
    base = draw(st.sampled_from(sorted(AuditLogger.SENSITIVE_KEYS)))
    prefix = draw(st.sampled_from(['', 'my_', 'x_', 'DV_']))
    suffix = draw(st.sampled_from(['', '_value', '_header', 'S']))
    return f"{prefix}{base}{suffix}"


@st.composite
def non_sensitive_data_strategy(draw) -> dict:
    """Generate data dictionaries without sensitive keys."""
    keys = draw(st.lists(non_sensitive_key_strategy(), max_size=5))
    return {
        key: draw(st.one_of(
            st.text(max_size=30),
            st.integers(min_value=-1000, max_value=1000),
            st.booleans(),
            st.none(),
        ))
        for key in keys
    }


class TestOutputFormatProperty:
    """
    Property-based tests for output formats.

    ``json`` writes one parseable object per line, ``text`` one bracketed
    line, and ``both`` writes the two in that order.
    """

    @given(
        level=log_level_strategy(),
        component=component_name_strategy(),
        message=message_strategy(),
        data=non_sensitive_data_strategy(),
    )
    @settings(max_examples=100)
    def test_both_formats(self, level: LogLevel, component: str, message: str, data: dict) -> None:
        output = StringIO()
        logger = AuditLogger(output_format="both", output_stream=output, min_level=LogLevel.DEBUG)

        entry = logger.log(level, component, message, data)

        lines = output.getvalue().rstrip("\n").split("\n")
        assert len(lines) == 2
        parsed = json.loads(lines[0])
        assert parsed["level"] == level.value
        assert parsed["component"] == component
        assert parsed["message"] == message
        assert parsed["data"] == data
        assert parsed["timestamp"] == entry.timestamp
        assert lines[1].startswith(f"[{entry.timestamp}] {level.value.upper()} [{component}] ")
        assert message in lines[1]

    def test_text_omits_empty_data(self) -> None:
        output = StringIO()
        logger = AuditLogger(output_format="text", output_stream=output)
        entry = logger.log(LogLevel.INFO, "DomainVerifier", "cache hit")
        assert output.getvalue() == f"[{entry.timestamp}] INFO [DomainVerifier] cache hit\n"

    def test_invalid_format_rejected(self) -> None:
        try:
            AuditLogger(output_format="xml")
            assert False, "Expected ValueError"
        except ValueError:
            pass


class TestLevelFilterProperty:
    """Entries below the minimum level are dropped and not written."""

    @given(level=log_level_strategy(), min_level=log_level_strategy())
    @settings(max_examples=100)
    def test_min_level(self, level: LogLevel, min_level: LogLevel) -> None:
        output = StringIO()
        logger = AuditLogger(output_format="json", output_stream=output, min_level=min_level)

        entry = logger.log(level, "Component", "message")

        if LEVEL_ORDER[level] >= LEVEL_ORDER[min_level]:
            assert entry is not None
            assert logger.entries == [entry]
        else:
            assert entry is None
            assert output.getvalue() == ""
            assert logger.entries == []


class TestEntryRetentionProperty:
    """Only the most recent entries are kept in memory."""

    @given(
        retained=st.integers(min_value=1, max_value=50),
        logged=st.integers(min_value=0, max_value=200),
    )
    @settings(max_examples=100)
    def test_retention_is_bounded(self, retained: int, logged: int) -> None:
        logger = AuditLogger(output_format="json", output_stream=StringIO(), retained_entries=retained)

        for i in range(logged):
            logger.log(LogLevel.INFO, "DomainVerifier", f"verification {i}")

        entries = logger.entries
        assert len(entries) == min(retained, logged)
        expected = [f"verification {i}" for i in range(max(0, logged - retained), logged)]
        assert [entry.message for entry in entries] == expected

    def test_default_bound(self) -> None:
        logger = AuditLogger(output_format="text", output_stream=StringIO())
        for i in range(5000):
            logger.log(LogLevel.INFO, "DomainVerifier", "cache hit")
        assert len(logger.entries) == 1000


class TestSensitiveDataMaskingProperty:
    """
    Property-based tests for sensitive data masking.

    Values under keys naming a secret are replaced with ``***MASKED***`` at
    any nesting depth, including dicts inside lists.
    """

    @given(
        sensitive_key=sensitive_key_strategy(),
        sensitive_value=st.text(alphabet=st.sampled_from("QWXYZ"), min_size=5, max_size=20),
    )
    @settings(max_examples=100)
    def test_sensitive_data_masked(self, sensitive_key: str, sensitive_value: str) -> None:
        output = StringIO()
        logger = AuditLogger(output_format="json", output_stream=output)

        entry = logger.log(LogLevel.INFO, "OwnershipStore", "state saved", {sensitive_key: sensitive_value})

        assert entry.data[sensitive_key] == "***MASKED***"
        parsed = json.loads(output.getvalue().strip())
        assert parsed["data"][sensitive_key] == "***MASKED***"
        assert sensitive_value not in output.getvalue()

    @given(sensitive_key=sensitive_key_strategy(), value=st.text(min_size=1, max_size=50))
    @settings(max_examples=100)
    def test_nested_sensitive_data_masked(self, sensitive_key: str, value: str) -> None:
        logger = AuditLogger(output_format="json", output_stream=StringIO())

        data = {
            "request": {sensitive_key: value, "url": "https://example.com"},
            "attempts": [{sensitive_key: value}, "plain"],
        }
        entry = logger.log(LogLevel.WARN, "ReachabilityProbe", "probe", data)

        assert entry.data["request"][sensitive_key] == "***MASKED***"
        assert entry.data["request"]["url"] == "https://example.com"
        assert entry.data["attempts"] == [{sensitive_key: "***MASKED***"}, "plain"]
        # Caller's dict is not modified
        assert data["request"][sensitive_key] == value

    @given(data=non_sensitive_data_strategy())
    @settings(max_examples=100)
    def test_non_sensitive_data_not_masked(self, data: dict) -> None:
        logger = AuditLogger(output_format="json", output_stream=StringIO())
        entry = logger.log(LogLevel.ERROR, "Component", "message", data)
        assert entry.data == data


class TestErrorContextProperty:
    """Error logs carry the exception type, message and request URL."""

    @given(message=message_strategy(), url=st.one_of(st.none(), st.just("https://example.com/alpus-verification.txt")))
    @settings(max_examples=100)
    def test_error_context(self, message: str, url) -> None:
        logger = AuditLogger(output_format="json", output_stream=StringIO())

        entry = logger.log_error(
            "OwnershipVerifier",
            message,
            error=TimeoutError("read timed out"),
            request_url=url,
            additional_data={"method": "file"},
        )

        assert entry.level is LogLevel.ERROR
        assert entry.data["error_type"] == "TimeoutError"
        assert entry.data["error_message"] == "read timed out"
        assert entry.data["method"] == "file"
        if url is None:
            assert "request_url" not in entry.data
        else:
            assert entry.data["request_url"] == url
