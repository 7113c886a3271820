"""
Tests for the configuration pipeline orchestrator
"""

import shutil
import tempfile
import unittest
from dataclasses import replace
from pathlib import Path
from unittest.mock import Mock

from bcg.appliers.bird_socket import BirdControlClient, ReconfigurationResult
from bcg.models import GlobalConfig, PeerRecord, RegistryMaxPrefixes
from bcg.pipeline.workflow import BirdConfigPipeline, PipelineConfig, apply_global_defaults
from bcg.registry.base import ASMetadataSource, PrefixFilterSource
from bcg.utils.config import BCGConfig
from bcg.utils.error_handling import ConfigValidationError, ReconfigurationError, RegistryFetchError

PEERING_CONFIG = """\
asn: 65000
router-id: 192.0.2.1
prefixes:
  - 203.0.113.0/24
peers:
  upstream:
    asn: 64500
    import: any
    export: cone
    neighbors:
      - 192.0.2.2
  customer:
    asn: 65001
    import: cone
    export: any
    automaxpfx: true
    autopfxfilter: true
    neighbors:
      - 192.0.2.3
      - 2001:db8::3
"""


class TestGlobalDefaults(unittest.TestCase):

    def setUp(self):
        self.config = GlobalConfig(asn=65000, router_id="192.0.2.1",
                                   prefixes=["203.0.113.0/24", "2001:db8:1000::1/36"])

    def test_defaults(self):
        resolved = apply_global_defaults(self.config)

        self.assertEqual(resolved.irrdb, "rr.ntt.net")
        self.assertEqual(resolved.rtr_server, "127.0.0.1")
        self.assertEqual(self.config.irrdb, "")
        self.assertIsNot(resolved, self.config)

    def test_configured_values_are_kept(self):
        resolved = apply_global_defaults(replace(self.config, irrdb="whois.radb.net", rtr_server="192.0.2.10"))

        self.assertEqual(resolved.irrdb, "whois.radb.net")
        self.assertEqual(resolved.rtr_server, "192.0.2.10")

    def test_invalid_router_id(self):
        for router_id in ("", "2001:db8::1", "192.0.2", "router1"):
            with self.subTest(router_id=router_id):
                with self.assertRaises(ConfigValidationError) as ctx:
                    apply_global_defaults(replace(self.config, router_id=router_id))
                self.assertEqual(ctx.exception.field, "router-id")

    def test_invalid_prefix(self):
        with self.assertRaises(ConfigValidationError) as ctx:
            apply_global_defaults(replace(self.config, prefixes=["203.0.113.0/33"]))
        self.assertIn("203.0.113.0/33", str(ctx.exception))


class TestBirdConfigPipeline(unittest.TestCase):

    def setUp(self):
        self.temp_dir = Path(tempfile.mkdtemp())
        self.config_file = self.temp_dir / "config.yml"
        self.config_file.write_text(PEERING_CONFIG)
        self.output_dir = self.temp_dir / "bird"

        self.metadata = Mock(spec=ASMetadataSource)
        self.metadata.fetch_as_metadata.return_value = RegistryMaxPrefixes(
            asn=65001, name="Customer", as_set="AS-CUSTOMER", max_prefix4=20, max_prefix6=5
        )
        self.filters = Mock(spec=PrefixFilterSource)
        self.filters.expand.side_effect = lambda macro, family, host: (
            ["192.0.2.0/24"] if family == 4 else ["2001:db8::/32"]
        )
        self.control = Mock(spec=BirdControlClient)
        self.control.apply_configuration.return_value = ReconfigurationResult(
            socket_path="/run/bird/bird.ctl", command="configure",
            greeting="0001 BIRD 2.15 ready.\n", response="0003 Reconfigured\n", reply_code=3,
        )

    def tearDown(self):
        shutil.rmtree(self.temp_dir, ignore_errors=True)

    def pipeline(self, dry_run=False):
        config = PipelineConfig(
            config_file=str(self.config_file),
            output_directory=str(self.output_dir),
            dry_run=dry_run,
        )
        return BirdConfigPipeline(
            config,
            settings=BCGConfig(),
            metadata_source=self.metadata,
            prefix_filter_source=self.filters,
            control_client=self.control,
        )

    def test_run(self):
        result = self.pipeline().run()

        self.assertTrue(result.success)
        self.assertEqual(result.peers_resolved, 2)
        self.assertEqual(result.sessions_compiled, 3)
        self.assertTrue(result.reconfigured)
        self.assertEqual(result.bird_response, "Reconfigured")
        self.assertEqual(sorted(Path(path).name for path in result.output_files),
                         ["AS64500_UPSTREAM.conf", "AS65001_CUSTOMER.conf", "bird.conf"])
        self.assertEqual(len(result.warnings), 1)

        self.metadata.fetch_as_metadata.assert_called_once_with(65001)
        self.assertEqual(self.filters.expand.call_count, 2)
        self.control.apply_configuration.assert_called_once_with("configure")

        customer = (self.output_dir / "AS65001_CUSTOMER.conf").read_text()
        self.assertIn("import limit 20 action disable;", customer)
        self.assertIn("define AS65001_CUSTOMER_PFX_V6 = [\n    2001:db8::/32\n];", customer)

    def test_dry_run_writes_nothing(self):
        result = self.pipeline(dry_run=True).run()

        self.assertTrue(result.dry_run)
        self.assertEqual(result.peers_resolved, 2)
        self.assertEqual(result.output_files, [])
        self.assertFalse(result.reconfigured)
        self.assertFalse(self.output_dir.exists())
        self.control.apply_configuration.assert_not_called()

    def test_peer_failure_aborts_before_output(self):
        self.metadata.fetch_as_metadata.side_effect = RegistryFetchError("PeeringDB request failed", asn=65001)

        with self.assertRaises(RegistryFetchError):
            self.pipeline().run()

        self.assertFalse(self.output_dir.exists())
        self.control.apply_configuration.assert_not_called()

    def test_reconfiguration_failure_after_write(self):
        self.control.apply_configuration.side_effect = ReconfigurationError("Cannot connect")

        with self.assertRaises(ReconfigurationError):
            self.pipeline().run()

        self.assertTrue((self.output_dir / "bird.conf").exists())

    def test_peers_resolved_in_configuration_order(self):
        pipeline = self.pipeline()
        global_config = GlobalConfig(
            asn=65000,
            router_id="192.0.2.1",
            peers={
                "zeta": PeerRecord(asn=65010, import_policy="none", export_policy="none", neighbors=["192.0.2.10"]),
                "alpha": PeerRecord(asn=65011, import_policy="none", export_policy="none", neighbors=["192.0.2.11"]),
            },
        )

        resolved_config, peers = pipeline.enrich(global_config)

        self.assertEqual([peer.policy.name for peer in peers], ["zeta", "alpha"])
        self.assertEqual(resolved_config.irrdb, "rr.ntt.net")


    def test_peer_names_mapping_to_the_same_symbol(self):
        pipeline = self.pipeline()
        global_config = GlobalConfig(
            asn=65000,
            router_id="192.0.2.1",
            peers={
                "foo-bar": PeerRecord(asn=65001, import_policy="any", export_policy="none", neighbors=["192.0.2.10"]),
                "foo bar": PeerRecord(asn=65001, import_policy="any", export_policy="none", neighbors=["192.0.2.11"]),
            },
        )

        with self.assertRaises(ConfigValidationError) as ctx:
            pipeline.enrich(global_config)

        self.assertEqual(ctx.exception.peer, "foo bar")
        self.assertIn("foo-bar", ctx.exception.message)
        self.assertIn("AS65001_FOO_BAR_v4_0", ctx.exception.message)

    def test_same_name_different_asn_is_allowed(self):
        global_config = GlobalConfig(
            asn=65000,
            router_id="192.0.2.1",
            peers={
                "foo-bar": PeerRecord(asn=65001, import_policy="none", export_policy="none", neighbors=["192.0.2.10"]),
                "foo bar": PeerRecord(asn=65002, import_policy="none", export_policy="none", neighbors=["192.0.2.11"]),
            },
        )

        _, peers = self.pipeline().enrich(global_config)
        self.assertEqual(len(peers), 2)

if __name__ == "__main__":
    unittest.main()
