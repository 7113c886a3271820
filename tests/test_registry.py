"""
Tests for the external registry clients (PeeringDB and bgpq4)
"""

import unittest
from unittest.mock import Mock, patch

import requests

from bcg.registry.bgpq4_wrapper import (
    BGPq4PrefixFilter,
    as_set_object,
    parse_bird_prefix_set,
    validate_as_set_object,
)
from bcg.registry.peeringdb import PeeringDBClient
from bcg.utils.error_handling import BGPq4ExecutionError, PrefixFilterParseError, RegistryFetchError
from bcg.utils.subprocess_manager import ProcessResult, ProcessState


BGPQ4_V4_OUTPUT = """NN = [
    192.0.2.0/24,
    198.51.100.0/22{22,24},
    203.0.113.0/24
];
"""


def process_result(stdout="", stderr="", returncode=0, state=ProcessState.COMPLETED):
    return ProcessResult(
        returncode=returncode,
        stdout=stdout,
        stderr=stderr,
        state=state,
        execution_time=0.1,
        command=["bgpq4"],
    )


class TestPrefixSetParser(unittest.TestCase):

    def test_parse_prefix_set(self):
        self.assertEqual(parse_bird_prefix_set(BGPQ4_V4_OUTPUT),
                         ["192.0.2.0/24", "198.51.100.0/22{22,24}", "203.0.113.0/24"])

    def test_parse_ipv6_set(self):
        output = "NN = [\n    2001:db8::/32{32,48},\n    2001:db8:1000::/36\n];\n"
        self.assertEqual(parse_bird_prefix_set(output), ["2001:db8::/32{32,48}", "2001:db8:1000::/36"])

    def test_parse_empty_set(self):
        self.assertEqual(parse_bird_prefix_set("NN = [ ];\n"), [])

    def test_single_length_range_entry(self):
        self.assertEqual(parse_bird_prefix_set("NN = [\n    10.0.0.0/8{8,24}\n];\n"), ["10.0.0.0/8{8,24}"])

    def test_length_ranges_followed_by_entries(self):
        output = "NN = [\n    10.0.0.0/8{8,24},\n    172.16.0.0/12{12,24}, 192.168.0.0/16\n];"
        self.assertEqual(parse_bird_prefix_set(output),
                         ["10.0.0.0/8{8,24}", "172.16.0.0/12{12,24}", "192.168.0.0/16"])

    def test_comments_are_ignored(self):
        output = "# generated by bgpq4\n" + BGPQ4_V4_OUTPUT
        self.assertEqual(len(parse_bird_prefix_set(output)), 3)

    def test_trailing_comma(self):
        self.assertEqual(parse_bird_prefix_set("NN = [\n  192.0.2.0/24,\n];"), ["192.0.2.0/24"])

    def test_malformed_output(self):
        for output in ("", "ERROR: Unable to connect", "NN = [ 192.0.2.0/24 ", "NN = [ not-a-prefix ];"):
            with self.subTest(output=output):
                with self.assertRaises(PrefixFilterParseError):
                    parse_bird_prefix_set(output)


class TestAsSetObject(unittest.TestCase):

    def test_source_prefix_is_stripped(self):
        self.assertEqual(as_set_object("RIPE::AS-EXAMPLE"), "AS-EXAMPLE")
        self.assertEqual(as_set_object("AS-EXAMPLE"), "AS-EXAMPLE")
        self.assertEqual(as_set_object("AS65001:AS-CUSTOMERS"), "AS65001:AS-CUSTOMERS")

    def test_validation(self):
        self.assertEqual(validate_as_set_object("AS65001:AS-CUSTOMERS"), "AS65001:AS-CUSTOMERS")
        for name in ("", "-h", "AS-X; rm -rf /", "AS X", "x" * 256):
            with self.subTest(name=name):
                with self.assertRaises(ValueError):
                    validate_as_set_object(name)


class TestBGPq4PrefixFilter(unittest.TestCase):

    def setUp(self):
        self.wrapper = BGPq4PrefixFilter(bgpq4_path="/usr/bin/bgpq4", command_timeout=30)

    def test_build_command(self):
        self.assertEqual(
            self.wrapper.build_command("RIPE::AS-EXAMPLE", 6, "rr.ntt.net"),
            ["/usr/bin/bgpq4", "-h", "rr.ntt.net", "-Ab6", "AS-EXAMPLE"],
        )

    def test_build_command_rejects_bad_input(self):
        for macro, family, host in (("AS-EXAMPLE", 5, "rr.ntt.net"),
                                    ("AS-EXAMPLE", 4, "-rr.ntt.net"),
                                    ("AS-EXAMPLE", 4, ""),
                                    ("RIPE::-S", 4, "rr.ntt.net")):
            with self.subTest(macro=macro, family=family, host=host):
                with self.assertRaises(ValueError):
                    self.wrapper.build_command(macro, family, host)

    @patch("bcg.registry.bgpq4_wrapper.run_with_resource_management")
    def test_expand(self, mock_run):
        mock_run.return_value = process_result(stdout=BGPQ4_V4_OUTPUT)

        prefixes = self.wrapper.expand("AS-EXAMPLE", 4, "rr.ntt.net")

        self.assertEqual(prefixes[0], "192.0.2.0/24")
        mock_run.assert_called_once_with(
            ["/usr/bin/bgpq4", "-h", "rr.ntt.net", "-Ab4", "AS-EXAMPLE"], timeout=30
        )

    @patch("bcg.registry.bgpq4_wrapper.run_with_resource_management")
    def test_expand_unsafe_macro_never_runs(self, mock_run):
        with self.assertRaises(BGPq4ExecutionError):
            self.wrapper.expand("--help", 4, "rr.ntt.net")
        mock_run.assert_not_called()

    @patch("bcg.registry.bgpq4_wrapper.run_with_resource_management")
    def test_expand_failure(self, mock_run):
        mock_run.return_value = process_result(stderr="FATAL ERROR: no such object\n",
                                               returncode=1, state=ProcessState.FAILED)

        with self.assertRaises(BGPq4ExecutionError) as ctx:
            self.wrapper.expand("AS-EXAMPLE", 4, "rr.ntt.net")

        self.assertEqual(ctx.exception.technical_details, "FATAL ERROR: no such object")
        self.assertIsInstance(ctx.exception, RegistryFetchError)

    @patch("bcg.registry.bgpq4_wrapper.run_with_resource_management")
    def test_expand_timeout(self, mock_run):
        mock_run.return_value = process_result(returncode=-9, state=ProcessState.TIMEOUT)

        with self.assertRaises(BGPq4ExecutionError) as ctx:
            self.wrapper.expand("AS-EXAMPLE", 6, "rr.ntt.net")
        self.assertIn("timed out", str(ctx.exception))

    @patch("bcg.registry.bgpq4_wrapper.run_with_resource_management")
    def test_expand_missing_binary(self, mock_run):
        mock_run.side_effect = FileNotFoundError("bgpq4")

        with self.assertRaises(BGPq4ExecutionError):
            self.wrapper.expand("AS-EXAMPLE", 4, "rr.ntt.net")

    @patch("bcg.registry.bgpq4_wrapper.run_with_resource_management")
    def test_expand_unparseable_output(self, mock_run):
        mock_run.return_value = process_result(stdout="garbage")

        with self.assertRaises(PrefixFilterParseError):
            self.wrapper.expand("AS-EXAMPLE", 4, "rr.ntt.net")


class TestPeeringDBClient(unittest.TestCase):

    def setUp(self):
        self.client = PeeringDBClient(base_url="https://peeringdb.example/", timeout=5)
        self.record = {
            "name": "Example Networks",
            "irr_as_set": "RIPE::AS-EXAMPLE",
            "info_prefixes4": 42,
            "info_prefixes6": 7,
        }

    def response(self, body):
        response = Mock()
        response.json.return_value = body
        return response

    @patch("bcg.registry.peeringdb.requests.get")
    def test_fetch_as_metadata(self, mock_get):
        mock_get.return_value = self.response({"data": [self.record]})

        metadata = self.client.fetch_as_metadata(65001)

        self.assertEqual(metadata.as_set, "RIPE::AS-EXAMPLE")
        self.assertEqual((metadata.max_prefix4, metadata.max_prefix6), (42, 7))
        self.assertEqual(metadata.name, "Example Networks")

        args, kwargs = mock_get.call_args
        self.assertEqual(args[0], "https://peeringdb.example/api/net")
        self.assertEqual(kwargs["params"], {"asn": 65001})
        self.assertEqual(kwargs["timeout"], 5)
        self.assertTrue(kwargs["headers"]["User-Agent"].startswith("bcg/"))
        self.assertNotIn("Authorization", kwargs["headers"])

    @patch("bcg.registry.peeringdb.requests.get")
    def test_api_key_header(self, mock_get):
        mock_get.return_value = self.response({"data": [self.record]})
        PeeringDBClient(api_key="secret").fetch_as_metadata(65001)

        self.assertEqual(mock_get.call_args[1]["headers"]["Authorization"], "Api-Key secret")

    @patch("bcg.registry.peeringdb.requests.get")
    def test_multiple_records_use_first(self, mock_get):
        second = dict(self.record, info_prefixes4=1)
        mock_get.return_value = self.response({"data": [self.record, second]})

        with self.assertLogs("bcg.registry.peeringdb", level="WARNING"):
            metadata = self.client.fetch_as_metadata(65001)
        self.assertEqual(metadata.max_prefix4, 42)

    @patch("bcg.registry.peeringdb.requests.get")
    def test_no_records(self, mock_get):
        mock_get.return_value = self.response({"data": []})

        with self.assertRaises(RegistryFetchError) as ctx:
            self.client.fetch_as_metadata(65001)
        self.assertEqual(ctx.exception.asn, 65001)

    @patch("bcg.registry.peeringdb.requests.get")
    def test_malformed_bodies(self, mock_get):
        for body in ({}, {"data": "x"}, {"data": ["x"]}, [],
                     {"data": [dict(self.record, info_prefixes6=-1)]},
                     {"data": [dict(self.record, info_prefixes4="42")]},
                     {"data": [dict(self.record, info_prefixes4=True)]}):
            with self.subTest(body=body):
                mock_get.return_value = self.response(body)
                with self.assertRaises(RegistryFetchError):
                    self.client.fetch_as_metadata(65001)

    @patch("bcg.registry.peeringdb.requests.get")
    def test_undisclosed_prefix_count_is_zero(self, mock_get):
        record = dict(self.record, info_prefixes6=None)
        del record["info_prefixes4"]
        mock_get.return_value = self.response({"data": [record]})

        with self.assertLogs("bcg.registry.peeringdb", level="WARNING") as logs:
            metadata = self.client.fetch_as_metadata(65001)

        self.assertEqual((metadata.max_prefix4, metadata.max_prefix6), (0, 0))
        self.assertEqual(len(logs.records), 2)

    @patch("bcg.registry.peeringdb.requests.get")
    def test_invalid_json(self, mock_get):
        response = Mock()
        response.json.side_effect = ValueError("Expecting value")
        mock_get.return_value = response

        with self.assertRaises(RegistryFetchError):
            self.client.fetch_as_metadata(65001)

    @patch("bcg.registry.peeringdb.requests.get")
    def test_http_error(self, mock_get):
        response = Mock()
        response.raise_for_status.side_effect = requests.HTTPError("404 Client Error")
        mock_get.return_value = response

        with self.assertRaises(RegistryFetchError):
            self.client.fetch_as_metadata(65001)

    @patch("bcg.registry.peeringdb.requests.get")
    def test_connection_error(self, mock_get):
        mock_get.side_effect = requests.ConnectionError("Connection refused")

        with self.assertRaises(RegistryFetchError) as ctx:
            self.client.fetch_as_metadata(65001)
        self.assertIn("Connection refused", str(ctx.exception))

    @patch("bcg.registry.peeringdb.requests.get")
    def test_missing_as_set_is_empty(self, mock_get):
        mock_get.return_value = self.response({"data": [dict(self.record, irr_as_set=None)]})

        self.assertEqual(self.client.fetch_as_metadata(65001).as_set, "")


if __name__ == "__main__":
    unittest.main()
