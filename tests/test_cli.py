import io
import tempfile
import unittest
from contextlib import redirect_stderr, redirect_stdout
from pathlib import Path
from unittest.mock import patch

from fake_cluster import FakeCluster, write_keypair
from transference.cli import main
from transference.keys import derive_counter_address
from transference.record import CounterRecord


class CliTests(unittest.TestCase):
    def setUp(self) -> None:
        self._tmp = tempfile.TemporaryDirectory()
        self.addCleanup(self._tmp.cleanup)
        self.root = Path(self._tmp.name)
        self.payer = write_keypair(self.root / "id.json")
        self.program = write_keypair(self.root / "program.json")
        self.common = [
            "--rpc-url",
            "http://127.0.0.1:8899",
            "--keypair",
            str(self.root / "id.json"),
            "--program-keypair",
            str(self.root / "program.json"),
            "--config",
            str(self._project_file()),
        ]
        solana_cfg = patch("transference.config.load_solana_cli_config", return_value={})
        solana_cfg.start()
        self.addCleanup(solana_cfg.stop)

    def _project_file(self) -> Path:
        path = self.root / "transference.toml"
        path.write_text("[cluster]\n[program]\n")
        return path

    def _main(self, argv):
        out, err = io.StringIO(), io.StringIO()
        with redirect_stdout(out), redirect_stderr(err):
            rc = main(argv)
        return rc, out.getvalue(), err.getvalue()

    def test_address_prints_derived_counter(self) -> None:
        rc, out, _ = self._main(["address", *self.common])
        self.assertEqual(rc, 0)
        expected = derive_counter_address(self.payer.pubkey(), "transference", self.program.pubkey())
        self.assertEqual(out.strip(), str(expected))

    def test_address_with_custom_seed(self) -> None:
        rc, out, _ = self._main(["address", *self.common, "--seed", "other"])
        self.assertEqual(rc, 0)
        expected = derive_counter_address(self.payer.pubkey(), "other", self.program.pubkey())
        self.assertEqual(out.strip(), str(expected))

    def test_missing_keypair_exits_non_zero_on_stderr(self) -> None:
        (self.root / "id.json").unlink()
        rc, out, err = self._main(["address", *self.common])
        self.assertEqual(rc, 1)
        self.assertIn("id.json", err)
        self.assertEqual(out, "")

    def test_file_not_found_exits_non_zero_on_stderr(self) -> None:
        with patch("transference.cli.run", side_effect=FileNotFoundError("Program binary not found: dist/program/transference.so")):
            rc, out, err = self._main(["run", *self.common])
        self.assertEqual(rc, 1)
        self.assertIn("Program binary not found", err)
        self.assertEqual(out, "")

    def test_run_invokes_workflow_with_count(self) -> None:
        with patch("transference.cli.run", return_value=CounterRecord(counter=2)) as run_mock:
            rc, _, _ = self._main(["run", *self.common, "--count", "2"])
        self.assertEqual(rc, 0)
        config = run_mock.call_args.args[0]
        self.assertEqual(config.payer, str(self.root / "id.json"))
        self.assertEqual(run_mock.call_args.kwargs["count"], 2)

    def test_run_against_fake_cluster(self) -> None:
        cluster = FakeCluster()
        cluster.add_program(self.program.pubkey())
        with patch("transference.workflow.Client", return_value=cluster):
            rc, out, err = self._main(["run", *self.common])
        self.assertEqual(rc, 0, err)
        self.assertIn("has been greeted 1 time(s)", out)

    def test_run_unreachable_cluster_fails(self) -> None:
        cluster = FakeCluster(reachable=False)
        with patch("transference.workflow.Client", return_value=cluster):
            rc, _, err = self._main(["run", *self.common])
        self.assertEqual(rc, 1)
        self.assertIn("Unable to reach cluster", err)

    def test_balance_does_not_airdrop(self) -> None:
        cluster = FakeCluster()
        cluster.balances[self.payer.pubkey()] = 2_500_000_000
        with patch("transference.workflow.Client", return_value=cluster):
            rc, out, _ = self._main(["balance", *self.common])
        self.assertEqual(rc, 0)
        self.assertIn("2.5 SOL", out)
        self.assertEqual(cluster.airdrops, [])

    def test_config_init_writes_and_refuses_overwrite(self) -> None:
        out_path = self.root / "pinned.toml"
        rc, out, _ = self._main(["config", "init", *self.common, "--out", str(out_path)])
        self.assertEqual(rc, 0)
        self.assertIn("Wrote config file", out)
        self.assertIn("rpc_url = \"http://127.0.0.1:8899\"", out_path.read_text())

        rc, _, err = self._main(["config", "init", *self.common, "--out", str(out_path)])
        self.assertEqual(rc, 1)
        self.assertIn("already exists", err)

    def test_config_show(self) -> None:
        rc, out, _ = self._main(["config", "show", *self.common, "--cluster", "devnet"])
        self.assertEqual(rc, 0)
        # An explicit --rpc-url wins over --cluster.
        self.assertIn("rpc_url: http://127.0.0.1:8899", out)
        self.assertIn("seed: transference", out)


if __name__ == "__main__":
    unittest.main()
