import unittest
import importlib
import os
import tempfile


class TestMainIntegration(unittest.TestCase):
    def test_import_main(self):
        # Just ensure main.py can be imported without error
        importlib.import_module("main")

    def test_build_aggregator_from_config(self):
        main = importlib.import_module("main")
        with tempfile.TemporaryDirectory() as tmp:
            cfg = main.init_config(os.path.join(tmp, "graph.yaml"))
            cfg.set(["segment_count", "debug"], [12, True])
            agg = main.build_aggregator(cfg)
        self.assertEqual(agg.segment_count, 12)
        self.assertEqual(agg.label_count, 4)
        self.assertTrue(agg.strict)


if __name__ == "__main__":
    unittest.main()
