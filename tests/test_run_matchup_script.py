import importlib.util
import logging
import unittest
from pathlib import Path
from unittest.mock import patch

from litematch import utils
from litematch.matchup import matchup_config, pipeline
from litematch.matchup.matchup_config import MatchupConfig, RunConfig

logger = logging.getLogger(__name__)
utils.enable_logging(extra_loggers=[__name__])

SCRIPT = Path(__file__).parents[1] / "bin" / "run_matchup.py"


def load_script():
    spec = importlib.util.spec_from_file_location("run_matchup_script", SCRIPT)
    module = importlib.util.module_from_spec(spec)
    spec.loader.exec_module(module)
    return module


class RunMatchupScriptTestCase(unittest.TestCase):
    def setUp(self) -> None:
        self.script = load_script()
        self.run_config = RunConfig(
            matchups=[MatchupConfig(output_file="out.nc4", a_file="a.nc4", b_files=["b.nc4"])],
            nprocs=2,
            parallel_matchups=3,
        )

    @patch.object(pipeline, "run_matchups")
    @patch.object(matchup_config, "load_run_config")
    def test_multi_uses_file_settings(self, mock_load, mock_run):
        mock_load.return_value = self.run_config
        self.script.cmd_line_call(["multi", "batch.toml"])

        mock_load.assert_called_once_with("batch.toml")
        mock_run.assert_called_once_with(self.run_config.matchups, nprocs=2, parallel_matchups=3)

    @patch.object(pipeline, "run_matchups")
    @patch.object(matchup_config, "load_run_config")
    def test_multi_command_line_overrides(self, mock_load, mock_run):
        mock_load.return_value = self.run_config
        self.script.cmd_line_call(["-n", "16", "multi", "batch.toml", "-p", "1"])

        mock_run.assert_called_once_with(self.run_config.matchups, nprocs=16, parallel_matchups=1)

    @patch.object(pipeline, "run_matchup")
    def test_one_default_nprocs(self, mock_run):
        self.script.cmd_line_call(["one", "out.nc4", "a.nc4", "b1.nc4", "b2.nc4", "-0"])

        mock_run.assert_called_once()
        config = mock_run.call_args.args[0]
        self.assertEqual(mock_run.call_args.kwargs, {"nprocs": self.script.DEFAULT_NPROCS})
        self.assertEqual(config.a_file, Path("a.nc4"))
        self.assertEqual(config.b_files, [Path("b1.nc4"), Path("b2.nc4")])
        self.assertTrue(config.flag0_only)

    @patch.object(pipeline, "run_matchup", side_effect=ValueError("bad"))
    def test_failure_exits_nonzero(self, _):
        with self.assertRaises(SystemExit) as ctx:
            self.script.cmd_line_call(["-n", "1", "one", "out.nc4", "a.nc4", "b.nc4"])
        self.assertEqual(ctx.exception.code, 1)


if __name__ == "__main__":
    unittest.main()
