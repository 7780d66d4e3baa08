"""Unit tests for the raw message parser and header extraction."""

from ghostinbox.infrastructure.ingest.message_parser import (
    extract_address,
    extract_origin_ip,
    get_header,
    is_private_ip,
    parse_message,
)


class TestParseMessage:
    def test_headers_and_body_split_at_first_blank_line(self):
        raw = "From: a@b.org\r\nSubject: Hi\r\n\r\nline one\r\n\r\nline three"

        parsed = parse_message(raw)

        assert parsed.headers == {"From": "a@b.org", "Subject": "Hi"}
        assert parsed.body == "line one\n\nline three"

    def test_lf_line_endings(self):
        parsed = parse_message("To: x@example.com\n\nbody")

        assert parsed.headers["To"] == "x@example.com"
        assert parsed.body == "body"

    def test_continuation_line_joined_with_single_space(self):
        raw = "Subject: a very\r\n   long subject\r\n\tindeed\r\n\r\n"

        parsed = parse_message(raw)

        assert parsed.headers["Subject"] == "a very long subject indeed"

    def test_keys_kept_as_received(self):
        parsed = parse_message("subject: lower\n\n")

        assert "subject" in parsed.headers
        assert "Subject" not in parsed.headers
        assert parsed.get("SUBJECT") == "lower"

    def test_malformed_lines_are_skipped(self):
        parsed = parse_message("garbage line\nFrom: a@b.org\n\nbody")

        assert parsed.headers == {"From": "a@b.org"}

    def test_duplicate_headers_all_kept_in_items(self):
        raw = "Received: one\nReceived: two\n\n"

        parsed = parse_message(raw)

        assert parsed.headers["Received"] == "one"
        assert [value for _, value in parsed.header_items] == ["one", "two"]

    def test_empty_input_does_not_raise(self):
        parsed = parse_message("")

        assert parsed.headers == {}
        assert parsed.body == ""
        assert parsed.get("From") == ""

    def test_get_header_missing_returns_default(self):
        assert get_header({"From": "x"}, "To") == ""
        assert get_header({"From": "x"}, "To", "none") == "none"


class TestExtractAddress:
    def test_angle_brackets_preferred(self):
        assert extract_address("Jane Doe <jane@example.org>") == "jane@example.org"

    def test_bare_address(self):
        assert extract_address("jane@example.org (Jane)") == "jane@example.org"

    def test_falls_back_to_trimmed_value(self):
        assert extract_address("  undisclosed-recipients  ") == "undisclosed-recipients"

    def test_empty_and_none(self):
        assert extract_address("") == ""
        assert extract_address(None) == ""


class TestExtractOriginIP:
    def test_skips_private_hop_before_public_one(self):
        headers = [
            ("Received", "from x [10.0.0.5]"),
            ("Received", "from y [203.0.113.9]"),
        ]

        assert extract_origin_ip(headers) == "203.0.113.9"

    def test_bracketed_preferred_over_parenthesized(self):
        headers = [("Received", "from host (198.51.100.7) [203.0.113.9] by mx")]

        assert extract_origin_ip(headers) == "203.0.113.9"

    def test_parenthesized_address(self):
        headers = [("Received", "from host (198.51.100.7) by mx.example.com")]

        assert extract_origin_ip(headers) == "198.51.100.7"

    def test_bare_dotted_quad(self):
        headers = [("Received", "from 198.51.100.7 by mx.example.com")]

        assert extract_origin_ip(headers) == "198.51.100.7"

    def test_header_name_case_insensitive(self):
        headers = [("RECEIVED", "from y [203.0.113.9]")]

        assert extract_origin_ip(headers) == "203.0.113.9"

    def test_only_private_addresses_yield_none(self):
        headers = [
            ("Received", "from localhost [127.0.0.1]"),
            ("Received", "from lan [192.168.1.20]"),
            ("Received", "from docker [172.17.0.2]"),
        ]

        assert extract_origin_ip(headers) is None

    def test_invalid_octets_ignored(self):
        headers = [("Received", "from bogus [999.1.1.1]")]

        assert extract_origin_ip(headers) is None

    def test_private_from_hop_does_not_fall_through_to_by_clause(self):
        headers = [
            ("Received", "from lan-host (lan-host [10.0.0.5]) by mx.example.com (198.51.100.10) with ESMTP"),
            ("Received", "from mail.sender.org [203.0.113.9]"),
        ]

        assert extract_origin_ip(headers) == "203.0.113.9"

    def test_header_without_from_clause_ignored(self):
        headers = [("Received", "by mx.example.com (198.51.100.10) with LMTP id abc")]

        assert extract_origin_ip(headers) is None

    def test_only_first_bracketed_address_considered(self):
        headers = [
            ("Received", "from relay [192.168.1.4] ([198.51.100.10]) by mx"),
            ("Received", "from sender [203.0.113.9] by relay"),
        ]

        assert extract_origin_ip(headers) == "203.0.113.9"

    def test_no_received_headers(self):
        assert extract_origin_ip({"From": "a@b.org"}) is None

    def test_parsed_message_items(self):
        raw = (
            "Received: from relay (relay [10.1.2.3])\r\n"
            "\tby mx.example.com\r\n"
            "Received: from mail.external.org\r\n"
            " (mail.external.org [203.0.113.9])\r\n"
            "\r\n"
        )

        parsed = parse_message(raw)

        assert extract_origin_ip(parsed.header_items) == "203.0.113.9"


class TestIsPrivateIP:
    def test_private_ranges(self):
        for ip in ("127.0.0.1", "10.20.30.40", "172.16.0.1", "172.31.255.255", "192.168.0.1"):
            assert is_private_ip(ip), ip

    def test_public_addresses(self):
        for ip in ("203.0.113.9", "172.32.0.1", "8.8.8.8"):
            assert not is_private_ip(ip), ip

    def test_garbage_is_not_private(self):
        assert not is_private_ip("not-an-ip")
